"""
Modem model - authorized balloon modems.

Only points from modems in this table are accepted for assignment.
The table is rebuilt from the modem CSV on startup and serves as the
fallback source when the CSV cannot be loaded.
"""

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from aurora.models.base import Base


class Modem(Base):
    """
    Authorized modem keyed by IMEI.

    Fields:
        imei: 15-digit modem IMEI
        organization: Owning organization (spaces replaced by dashes)
        name: Unique display name (spaces replaced by underscores)
    """

    __tablename__ = 'modems'

    imei: Mapped[int] = mapped_column(
        BigInteger,
        primary_key=True,
        autoincrement=False,
        comment='Modem IMEI'
    )

    organization: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        index=True,
        comment='Owning organization'
    )

    name: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
        comment='Unique modem name'
    )

    def __repr__(self) -> str:
        return f'<Modem {self.imei} {self.name} ({self.organization})>'
