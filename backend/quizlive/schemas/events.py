from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from ..errors import InvalidEvent

QuizId = Annotated[str, Field(min_length=1, max_length=128)]
Address = Annotated[str, Field(min_length=1, max_length=128)]


class InboundEvent(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)


class JoinQuiz(InboundEvent):
    type: Literal["join_quiz"]
    quizId: QuizId
    userAddress: Address
    userName: str = Field(default="", max_length=256)


class StartQuiz(InboundEvent):
    type: Literal["start_quiz"]
    quizId: QuizId
    creatorAddress: str | None = Field(default=None, max_length=128)


class EndQuiz(InboundEvent):
    type: Literal["end_quiz"]
    quizId: QuizId
    creatorAddress: str | None = Field(default=None, max_length=128)


class SubmitAnswer(InboundEvent):
    type: Literal["submit_answer"]
    quizId: QuizId
    userAddress: Address
    questionIndex: int = Field(ge=0, le=10_000)
    answer: Any = None
    isCorrect: bool = False


class DistributeRewards(InboundEvent):
    type: Literal["distribute_rewards"]
    quizId: QuizId
    creatorAddress: str | None = Field(default=None, max_length=128)


class Ping(InboundEvent):
    type: Literal["ping"]


InboundMessage = Annotated[
    Union[JoinQuiz, StartQuiz, EndQuiz, SubmitAnswer, DistributeRewards, Ping],
    Field(discriminator="type"),
]

_inbound_adapter: TypeAdapter[InboundMessage] = TypeAdapter(InboundMessage)


def parse_inbound(data: Any) -> InboundEvent:
    if not isinstance(data, dict):
        raise InvalidEvent("Expected a JSON object")
    try:
        return _inbound_adapter.validate_python(data)
    except ValidationError as exc:
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ())) or "message"
        raise InvalidEvent(f"{location}: {first.get('msg', 'invalid event')}") from exc


class ParticipantSummary(BaseModel):
    address: str
    name: str
    score: int


class OutboundEvent(BaseModel):
    def to_wire(self) -> tuple[str, dict[str, Any]]:
        payload = self.model_dump(mode="json", exclude_none=True)
        return str(payload.pop("type")), payload


class Connected(OutboundEvent):
    type: Literal["connected"] = "connected"
    connectionId: str


class Pong(OutboundEvent):
    type: Literal["pong"] = "pong"
    serverTime: int


class ErrorEvent(OutboundEvent):
    type: Literal["error"] = "error"
    code: str
    message: str
    quizId: str | None = None


class ParticipantJoined(OutboundEvent):
    type: Literal["participant_joined"] = "participant_joined"
    quizId: str
    participant: ParticipantSummary
    totalParticipants: int


class QuizStatus(OutboundEvent):
    type: Literal["quiz_status"] = "quiz_status"
    quizId: str
    status: str
    participants: list[dict[str, Any]]
    currentQuestion: int
    started: bool
    ended: bool


class QuizStarted(OutboundEvent):
    type: Literal["quiz_started"] = "quiz_started"
    quizId: str
    startedAt: int
    totalQuestions: int


class QuizEnded(OutboundEvent):
    type: Literal["quiz_ended"] = "quiz_ended"
    quizId: str
    endedAt: int
    participants: list[dict[str, Any]]


class ScoreUpdated(OutboundEvent):
    type: Literal["score_updated"] = "score_updated"
    quizId: str
    participant: ParticipantSummary


class RewardsDistributed(OutboundEvent):
    type: Literal["rewards_distributed"] = "rewards_distributed"
    quizId: str
    winner: ParticipantSummary
    distributedBy: str | None = None
