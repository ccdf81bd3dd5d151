from decouple import Csv, config

SUPABASE_URL = config("SUPABASE_URL", default="http://localhost:54321")
SUPABASE_KEY = config("SUPABASE_KEY", default="")
# admin client bypasses row-level security; falls back to the regular key
SUPABASE_SERVICE_ROLE_KEY = config("SUPABASE_SERVICE_ROLE_KEY", default=SUPABASE_KEY)

RAZORPAY_KEY_ID = config("RAZORPAY_KEY_ID", default="")
RAZORPAY_SECRET = config("RAZORPAY_SECRET", default="")

SMTP_HOST = config("SMTP_HOST", default="smtp.gmail.com")
SMTP_PORT = config("SMTP_PORT", cast=int, default=587)
SMTP_USER = config("SMTP_USER", default="")
SMTP_PASS = config("SMTP_PASS", default="")
EMAIL_FROM = config("EMAIL_FROM", default=SMTP_USER)
EMAIL_BCC = config("EMAIL_BCC", default="")

DEFAULT_CURRENCY = config("DEFAULT_CURRENCY", default="EUR")
# registrations this many days (or fewer) before the start date pay the late price
LATE_REGISTRATION_DAYS = config("LATE_REGISTRATION_DAYS", cast=int, default=14)

CORS_ALLOWED_ORIGINS = config(
    "CORS_ALLOWED_ORIGINS", cast=Csv(), default="http://localhost:5173"
)

LOG_LEVEL = config("LOG_LEVEL", default="INFO")
LOG_JSON = config("LOG_JSON", cast=bool, default=False)
