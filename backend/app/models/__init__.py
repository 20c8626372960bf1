"""ORM Models — SQLAlchemy declarative models for the recruitment aggregate.

Invariants:
    - All models inherit from Base (db/base.py)
    - StudyRecruitment is the aggregate root; cohorts and shipments are keyed
      independently for point lookup

Design Decisions:
    - One file per entity for locality
    - All models imported here so SQLAlchemy resolves string-based relationship()
      references before any query runs
"""

from app.models.study_recruitment import StudyRecruitment  # noqa: F401
from app.models.cohort import Cohort  # noqa: F401
from app.models.participant_shipping import ParticipantShipping  # noqa: F401
