import os
import logging
from pydantic import BaseModel, Field
from dotenv import load_dotenv

load_dotenv()

class PayrollSettings(BaseModel):
    payment_entered_by: str = "System (Payment)"
    payment_created_by: str = "Auto-Payment"
    advance_label: str = "ADVANCE"
    default_advance_note: str = "Advance Payment"
    unknown_product: str = "Unknown Product"
    unknown_operation: str = "Unknown Operation"
    unknown_worker: str = "Unknown Worker"
    # Logging production work also writes an unpaid salary line for the worker
    mirror_production_to_salary: bool = Field(
        default=os.getenv("MIRROR_PRODUCTION_TO_SALARY", "true").lower() == "true"
    )

class Config(BaseModel):
    app_name: str = "Garment Payroll"
    environment: str = os.getenv("APP_ENV", "development")
    api_prefix: str = "/api"
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # Database
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./payroll.db")

    version: str = "1.0.0"
    request_id_header: str = "X-Request-ID"

    rate_limit_per_minute: int = int(os.getenv("RATE_LIMIT_PER_MINUTE", "120"))

    payroll: PayrollSettings = PayrollSettings()

settings = Config()

_logger = logging.getLogger(__name__)
if settings.environment != "development" and settings.database_url.startswith("sqlite:///./"):
    _logger.warning("⚠ Using the local SQLite file outside development.")
