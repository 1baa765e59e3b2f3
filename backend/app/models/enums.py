"""
User roles and dashboard views.

Roles are stored lowercase to match the identifiers the school's
clients already send.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        ADMIN: School administration, full access
        TEACHER: Teaching staff
        PARENT: Guardian of one or more students (default for self sign-up)
        STUDENT: Enrolled student, owns a canteen wallet
        DRIVER: School bus driver
        DEVELOPER: Platform support, sees every view
        FINANCE: Finance office staff
        CANTEEN: Canteen cashier
        SCHOOL_ATTENDANCE: Entrance attendance device account
        BUS_ATTENDANCE: Bus attendance device account
        SUPERVISOR: Bus supervisor
    """
    ADMIN = "admin"
    TEACHER = "teacher"
    PARENT = "parent"
    STUDENT = "student"
    DRIVER = "driver"
    DEVELOPER = "developer"
    FINANCE = "finance"
    CANTEEN = "canteen"
    SCHOOL_ATTENDANCE = "school_attendance"
    BUS_ATTENDANCE = "bus_attendance"
    SUPERVISOR = "supervisor"


class View(str, enum.Enum):
    """Dashboard views a client can route to."""
    DASHBOARD = "dashboard"
    STUDENTS = "students"
    TEACHERS = "teachers"
    CLASSES = "classes"
    SCHEDULE = "schedule"
    EXAMS = "exams"
    HOMEWORK = "homework"
    GRADES = "grades"
    NFC_ATTENDANCE = "nfc_attendance"
    BUS_TRACKING = "bus_tracking"
    TRANSPORT = "transport"
    FINANCE = "finance"
    FEE_MANAGEMENT = "fee_management"
    PARENT_FINANCE = "parent_finance"
    PAYROLL = "payroll"
    WALLET = "wallet"
    STORE = "store"
    KITCHEN = "kitchen"
    CANTEEN = "canteen"
    MESSAGES = "messages"
    REPORTS = "reports"
    USER_MANAGEMENT = "user_management"
    NFC_MANAGEMENT = "nfc_management"
    SETTINGS = "settings"


def enum_values(enum_cls):
    """Persist enum values (not member names) in SQLAlchemy Enum columns."""
    return [member.value for member in enum_cls]
