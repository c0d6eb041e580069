from pathlib import Path
from decimal import Decimal
import os
import sentry_sdk
from sentry_sdk.integrations.django import DjangoIntegration

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "dev-only")
DEBUG = os.getenv("DJANGO_DEBUG", "1") == "1"

ALLOWED_HOSTS = ["localhost", "127.0.0.1"]


INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.auth",

    "rest_framework",

    "fiscal",
]

MIDDLEWARE = []


# =============================
# Banco de dados
# =============================
# DB_ENGINE=postgres usa as variáveis PG*; padrão é sqlite local.
DB_ENGINE = os.getenv("DB_ENGINE", "sqlite").lower()

if DB_ENGINE == "postgres":
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": os.getenv("PGDATABASE", "nfedados"),
            "USER": os.getenv("PGUSER", "postgres"),
            "PASSWORD": os.getenv("PGPASSWORD", ""),
            "HOST": os.getenv("PGHOST", "127.0.0.1"),
            "PORT": os.getenv("PGPORT", "5432"),
            "TEST": {
                "NAME": "test_nfedados",
            },
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": os.getenv("SQLITE_PATH", str(BASE_DIR / "db.sqlite3")),
        }
    }

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

LANGUAGE_CODE = "pt-br"
TIME_ZONE = "America/Sao_Paulo"
USE_I18N = True
USE_TZ = True


# =============================
# NF-e
# =============================
SEFAZ_AMBIENTE = os.getenv("SEFAZ_AMBIENTE", "homolog")

# Diferença máxima (inclusiva) entre soma dos pagamentos e total da nota
NFE_TOLERANCIA_PAGAMENTO = Decimal(os.getenv("NFE_TOLERANCIA_PAGAMENTO", "0.01"))
NFE_JUSTIFICATIVA_MIN_CARACTERES = int(os.getenv("NFE_JUSTIFICATIVA_MIN_CARACTERES", "15"))

# "banco" = CodigoFiscal provisionado; "estatico" = tabelas embarcadas
NFE_CATALOGO = os.getenv("NFE_CATALOGO", "estatico")


sentry_sdk.init(
    dsn=os.getenv("SENTRY_DSN", ""),
    integrations=[DjangoIntegration()],
    traces_sample_rate=0.1,
    send_default_pii=False,
)

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "json": {
            "class": "pythonjsonlogger.json.JsonFormatter",
        },
        "simple": {
            "format": "{levelname} {asctime} {name} {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "json",
            "level": "INFO",
        },
    },
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": "INFO",
            "propagate": True,
        },
        "nfe.fiscal": {
            "handlers": ["console"],
            "level": "DEBUG",
            "propagate": True,
        },
    },
}
