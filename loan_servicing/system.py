"""
Lending System Module

Wires storage, audit trail, managers, the payment processor and reports
together from configuration.
"""

from typing import Optional

from .audit import AuditTrail
from .clients import ClientManager
from .config import LendbookConfig, get_config
from .dates import Clock, SystemClock
from .fees import FeeCalculator
from .loans import LoanManager
from .logging_config import get_logger, setup_logging
from .models import LateFeePolicy
from .payments import PaymentProcessor
from .reporting import Dashboard, ReportAggregator
from .schedule import ScheduleGenerator
from .storage import StorageInterface, create_storage
from .store import LoanStore


logger = get_logger("lendbook.system")


class LendingSystem:
    """Loan servicing system with all components initialized"""

    def __init__(
        self,
        config: Optional[LendbookConfig] = None,
        storage: Optional[StorageInterface] = None,
        clock: Optional[Clock] = None,
        configure_logging: bool = False
    ):
        self.config = config or get_config()
        if configure_logging:
            setup_logging(self.config.log_level, self.config.log_format, self.config.log_file)

        self.clock = clock or SystemClock()

        # Initialize storage
        self.storage = storage or create_storage(self.config.database_url)
        self.store = LoanStore(
            self.storage, self.clock, loan_number_digits=self.config.loan_number_digits
        )

        # Initialize core components
        self.audit_trail = AuditTrail(self.storage, enabled=self.config.enable_audit_logging)
        self.schedule_generator = ScheduleGenerator()
        self.fee_calculator = FeeCalculator()

        self.client_manager = ClientManager(self.store, self.audit_trail)
        self.loan_manager = LoanManager(self.store, self.audit_trail, self.schedule_generator)
        self.payment_processor = PaymentProcessor(
            self.store,
            self.audit_trail,
            fee_calculator=self.fee_calculator,
            late_fee_policy=LateFeePolicy(self.config.late_fee_policy),
            clock=self.clock
        )
        self.reports = ReportAggregator(self.store, self.clock)

        logger.debug("Lending system initialized with %s", type(self.storage).__name__)

    def dashboard(self) -> Dashboard:
        """Dashboard snapshot using the configured windows"""
        return self.reports.dashboard(
            recent_limit=self.config.dashboard_recent_loans,
            window_days=self.config.dashboard_window_days
        )

    def close(self) -> None:
        self.storage.close()

    def __enter__(self) -> 'LendingSystem':
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()
