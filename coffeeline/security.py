from flask_talisman import Talisman
from werkzeug.middleware.proxy_fix import ProxyFix

# The QR scanner is bundled with our own static assets, so every source is 'self'
CSP = {
    "default-src": ["'self'"],
    "script-src": ["'self'"],
    "style-src": ["'self'", "'unsafe-inline'"],
    "img-src": ["'self'", "data:", "blob:"],
    "media-src": ["'self'", "blob:"],
    "connect-src": ["'self'"],
    "frame-ancestors": ["'none'"],
    "base-uri": ["'self'"],
    "form-action": ["'self'"],
}


def init_security(app):
    """
    Staging/production only: HTTPS, HSTS, CSP and camera permission for the scanner.

    With TRUST_PROXY_HOPS set, X-Forwarded-* headers are honoured so that
    ``request.url`` matches the public URL Twilio signs status callbacks with.
    """
    hops = int(app.config.get("TRUST_PROXY_HOPS") or 0)
    if hops:
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=hops, x_proto=hops, x_host=hops)

    Talisman(
        app,
        content_security_policy=CSP,
        force_https=True,
        strict_transport_security=True,
        session_cookie_secure=True,
        frame_options="DENY",
        referrer_policy="same-origin",
        permissions_policy={"camera": "(self)", "geolocation": "()", "microphone": "()"},
    )
