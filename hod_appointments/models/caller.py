from pydantic import BaseModel, ConfigDict

from hod_appointments.models.user import Role, User


class Caller(BaseModel):
    """Authenticated identity on whose behalf a service call runs.

    Built once per request from the verified token and passed explicitly to every
    lifecycle operation; services trust its role without re-checking the store.
    """

    model_config = ConfigDict(frozen=True)

    id: int
    role: Role
    name: str
    email: str
    student_id: str | None = None

    @property
    def is_hod(self) -> bool:
        return self.role == Role.HOD

    def owns(self, student_ref: int) -> bool:
        return self.id == student_ref

    @classmethod
    def from_user(cls, user: User) -> "Caller":
        return cls(
            id=user.id,
            role=Role(user.role),
            name=user.name,
            email=user.email,
            student_id=user.student_id,
        )
