import os
import logging
from logging.handlers import RotatingFileHandler
import sys
from decimal import Decimal

from flask import Flask, jsonify, request
from flask_wtf.csrf import CSRFProtect
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from werkzeug.middleware.proxy_fix import ProxyFix


def setup_logging():
    """
    Configura logging centralizado con rotación de archivos

    Niveles de log:
    - DEBUG: Detalle de cálculos de corte y comisiones
    - INFO: Operaciones exitosas (ventas, cierres, remesas)
    - WARNING: Validaciones fallidas, día cerrado, accesos denegados
    - ERROR: Errores de persistencia o inesperados
    """
    log_dir = os.environ.get('LOG_DIR', 'logs')
    if not os.path.exists(log_dir):
        os.makedirs(log_dir)

    log_format = logging.Formatter(
        '[%(asctime)s] %(levelname)s [%(name)s:%(lineno)d] - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    # 10 MB por archivo, mantener 10 archivos
    file_handler = RotatingFileHandler(
        filename=os.path.join(log_dir, 'pos_app.log'),
        maxBytes=10 * 1024 * 1024,
        backupCount=10,
        encoding='utf-8'
    )
    file_handler.setFormatter(log_format)
    file_handler.setLevel(logging.INFO)

    error_handler = RotatingFileHandler(
        filename=os.path.join(log_dir, 'pos_errors.log'),
        maxBytes=10 * 1024 * 1024,
        backupCount=10,
        encoding='utf-8'
    )
    error_handler.setFormatter(log_format)
    error_handler.setLevel(logging.ERROR)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(log_format)
    console_handler.setLevel(logging.DEBUG if os.environ.get("ENVIRONMENT") != "production" else logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    root_logger.addHandler(file_handler)
    root_logger.addHandler(error_handler)
    root_logger.addHandler(console_handler)

    # Reducir verbosidad de librerías externas
    logging.getLogger('werkzeug').setLevel(logging.WARNING)
    logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)

    logging.info("Sistema de logging configurado correctamente")


setup_logging()

app = Flask(__name__)

app.wsgi_app = ProxyFix(app.wsgi_app, x_proto=1, x_host=1)
app.secret_key = os.environ.get("SESSION_SECRET")
if not app.secret_key:
    if os.environ.get("ENVIRONMENT") == "production":
        raise RuntimeError("SESSION_SECRET environment variable must be set in production")
    else:
        app.secret_key = "dev-secret-key-change-in-production"

csrf = CSRFProtect(app)
app.config['WTF_CSRF_TIME_LIMIT'] = 3600

limiter = Limiter(
    app=app,
    key_func=get_remote_address,
    default_limits=[os.environ.get("RATELIMIT_DEFAULT", "200 per hour")],
    storage_uri="memory://",
    enabled=os.environ.get("RATELIMIT_ENABLED", "true").lower() == "true"
)

app.config['SESSION_COOKIE_SECURE'] = os.environ.get("ENVIRONMENT") == "production"
app.config['SESSION_COOKIE_HTTPONLY'] = True
app.config['SESSION_COOKIE_SAMESITE'] = 'Lax'

app.config["SQLALCHEMY_DATABASE_URI"] = os.environ.get("DATABASE_URL", "sqlite:///corte_caja.db")
app.config["SQLALCHEMY_ENGINE_OPTIONS"] = {
    "pool_recycle": 300,
    "pool_pre_ping": True,
}

# Fondo de caja con el que arranca un día sin registro
app.config["DEFAULT_INITIAL_FUND"] = Decimal(os.environ.get("DEFAULT_INITIAL_FUND", "200.00"))

import models  # noqa: F401
from models import db

db.init_app(app)

from routes import auth, api, admin

app.register_blueprint(auth.bp)
app.register_blueprint(api.bp)
app.register_blueprint(admin.bp)


@app.route('/')
def index():
    """Basic liveness payload for the presentation layer"""
    return jsonify({'service': 'corte-caja', 'status': 'ok'})


@app.route('/health')
@limiter.exempt
def health():
    return "OK", 200


@app.after_request
def add_security_headers(response):
    """Add security headers for production"""
    if os.environ.get("ENVIRONMENT") == "production":
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['X-Frame-Options'] = 'DENY'
        response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'

    # Los reportes de caja nunca deben quedar en caché
    if request.endpoint != 'health':
        response.headers['Cache-Control'] = 'no-cache, no-store, must-revalidate'
        response.headers['Pragma'] = 'no-cache'
        response.headers['Expires'] = '0'
    return response


if __name__ == '__main__':
    app.run(host='0.0.0.0', port=5000, debug=True)
