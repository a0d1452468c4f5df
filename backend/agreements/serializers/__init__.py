# backend/agreements/serializers/__init__.py
"""
Import serializers explicitly from their modules:
    from agreements.serializers.agreement import AgreementDetailSerializer
    from agreements.serializers.signing import SignPayloadSerializer
"""
__all__ = []
