_SECURITY_NAMES = {
    "verify_password",
    "get_password_hash",
    "create_access_token",
    "create_token_for_user",
    "decode_access_token",
    "authenticate_user",
    "get_current_user",
    "require_admin",
    "oauth2_scheme",
}
_EMAIL_NAMES = {"is_email_enabled", "send_email"}

__all__ = sorted(_SECURITY_NAMES | _EMAIL_NAMES | {"utcnow"})


def __getattr__(name):
    if name in _SECURITY_NAMES:
        from . import security as _security
        return getattr(_security, name)
    if name in _EMAIL_NAMES:
        from . import email as _email
        return getattr(_email, name)
    if name == "utcnow":
        from . import clock as _clock
        return _clock.utcnow
    raise AttributeError(f"module 'mentormatch.utils' has no attribute '{name}'")
