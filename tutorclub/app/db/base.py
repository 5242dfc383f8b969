from tutorclub.app.db.base_class import Base

# Import models to register metadata for Base.metadata.create_all in tests
from tutorclub.app.models.user import User  # noqa: F401
from tutorclub.app.models.family import Family  # noqa: F401
from tutorclub.app.models.student import Student  # noqa: F401
from tutorclub.app.models.teacher import Teacher  # noqa: F401
from tutorclub.app.models.school_class import SchoolClass  # noqa: F401
from tutorclub.app.models.enrollment import Enrollment  # noqa: F401
from tutorclub.app.models.session import Session  # noqa: F401
from tutorclub.app.models.attendance import Attendance  # noqa: F401
from tutorclub.app.models.discount import DiscountAssignment, DiscountDefinition, ReferralBonus  # noqa: F401
from tutorclub.app.models.sibling_discount import SiblingDiscountState  # noqa: F401
from tutorclub.app.models.ledger import LedgerAccount, LedgerEntry  # noqa: F401
from tutorclub.app.models.family_payment import FamilyPayment  # noqa: F401
from tutorclub.app.models.payment import Payment  # noqa: F401
from tutorclub.app.models.settlement import Settlement  # noqa: F401
from tutorclub.app.models.invoice import Invoice  # noqa: F401
from tutorclub.app.models.payroll_summary import PayrollSummary  # noqa: F401
from tutorclub.app.models.audit_log import AuditLog  # noqa: F401
