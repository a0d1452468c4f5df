# backend/agreements/views/__init__.py
"""
Import view modules explicitly where needed:
    from agreements.views.agreements import AgreementViewSet
    from agreements.views.public import SignByLinkView
"""
__all__ = []
