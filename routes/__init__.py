from .health import health_bp
from .companies import company_bp
from .catalog import catalog_bp
from .schedules import schedule_bp
from .booking import booking_bp
