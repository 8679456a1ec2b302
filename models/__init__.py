from .db import db
from .audit_log import AuditLog
from .ip_rate_limit import IpRateLimit
from .company import Company, CATEGORIES
from .service import Service
from .schedule_rule import WeeklyScheduleRule
from .schedule_exception import ScheduleException
from .booking import Booking
from .notification import Notification
