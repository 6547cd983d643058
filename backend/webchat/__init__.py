"""Webchat backend: phone-identified real-time chat room."""
