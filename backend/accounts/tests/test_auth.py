import pytest
from django.urls import reverse

pytestmark = pytest.mark.django_db


def test_login_returns_jwt_pair_and_me_lists_permissions(api_client, user_factory):
    user_factory(email="clerk@example.com", perms=["agreements.view_agreement"])

    response = api_client.post(
        reverse("auth-login"), {"email": "clerk@example.com", "password": "pass12345"}, format="json"
    )
    assert response.status_code == 200
    access = response.json()["access"]

    api_client.credentials(HTTP_AUTHORIZATION=f"Bearer {access}")
    me = api_client.get(reverse("auth-me"))
    assert me.status_code == 200
    assert me.json()["email"] == "clerk@example.com"
    assert me.json()["permissions"] == ["agreements.view_agreement"]


def test_wrong_password_is_rejected(api_client, user_factory):
    user_factory(email="clerk@example.com")
    response = api_client.post(
        reverse("auth-login"), {"email": "clerk@example.com", "password": "wrong"}, format="json"
    )
    assert response.status_code == 401
