import os
import threading

def _env_flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() in ["true", "1", "yes", "on"]

class BackendSettings:
    _instance = None
    _lock = threading.Lock()

    def __init__(self):
        self.DEBUG_MODE = os.environ.get("DEBUG_MODE","development")
        self.DATABASE_URL = os.environ.get("DATABASE_URL", None)
        # Identity provider (GoTrue / Supabase auth)
        self.GOTRUE_URL = os.environ.get("GOTRUE_URL", "http://localhost:9999")
        self.GOTRUE_ANON_KEY = os.environ.get("GOTRUE_ANON_KEY", "")
        self.GOTRUE_JWT_SECRET = os.environ.get("GOTRUE_JWT_SECRET", None)
        self.GOTRUE_TIMEOUT = float(os.environ.get("GOTRUE_TIMEOUT", "5"))
        self.AUTH_COOKIE_NAME = os.environ.get("AUTH_COOKIE_NAME", "sb-auth-token")
        self.ENABLE_ROUTE_GATE = _env_flag("ENABLE_ROUTE_GATE", "true")
        # Route layout used by the gate
        self.DASHBOARD_PREFIX = os.environ.get("DASHBOARD_PREFIX", "/dashboard")
        self.ADMIN_PREFIX = os.environ.get("ADMIN_PREFIX", "/admin")
        self.API_PREFIX = os.environ.get("API_PREFIX", "/api")
        self.ADMIN_API_PREFIX = os.environ.get("ADMIN_API_PREFIX", "/api/admin")
        self.MAINTENANCE_PATH = os.environ.get("MAINTENANCE_PATH", "/maintenance")
        self.SIGNIN_PATH = os.environ.get("SIGNIN_PATH", "/signin")
        self.SIGNUP_PATH = os.environ.get("SIGNUP_PATH", "/signup")
        self.SITE_ROOT = os.environ.get("SITE_ROOT", "/")
        self.SHOP_PREFIXES = tuple(
            p.strip() for p in os.environ.get("SHOP_PREFIXES", "/shop,/cart,/checkout").split(",") if p.strip()
        )

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super(BackendSettings, cls).__new__(cls)
        return cls._instance

    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        user = os.environ.get("POSTGRES_USER")
        password = os.environ.get("POSTGRES_PASSWORD")
        host = os.environ.get("POSTGRES_URL")
        db = os.environ.get("POSTGRES_DB")
        return f"postgresql://{user}:{password}@{host}/{db}"

settings = BackendSettings()
