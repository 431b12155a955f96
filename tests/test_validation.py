"""Tests for state inspection and transition validation."""

import asyncio

import pytest

from container_gateway.core.exceptions import BackendFailureError, ContainerNotFoundError
from container_gateway.models.enums import ContainerOperation, ValidationVerdict
from container_gateway.services.inspector import InspectionResult, StateInspector
from container_gateway.services.validation import TransitionValidator

from .conftest import FakeBackend


class TestStateInspector:
    @pytest.mark.asyncio
    async def test_generic_record_state(self, backend):
        inspector = StateInspector(backend, timeout=1)

        assert await inspector.inspect("web") == InspectionResult("running", True)

    @pytest.mark.asyncio
    async def test_typed_record_state(self, backend):
        inspector = StateInspector(backend, timeout=1)

        assert await inspector.inspect("api") == InspectionResult("running", True)

    @pytest.mark.asyncio
    async def test_missing_state_is_not_found(self, backend):
        inspector = StateInspector(backend, timeout=1)

        assert await inspector.inspect("ghost") == InspectionResult(None, False)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("record", [{"id": "x"}, {"id": "x", "state": ""}, {"id": "x", "state": 3}])
    async def test_unusable_state_values(self, record):
        inspector = StateInspector(FakeBackend(containers={"x": record}), timeout=1)

        state, found = await inspector.inspect("x")

        assert state is None
        assert found is False

    @pytest.mark.asyncio
    async def test_unreadable_record(self):
        inspector = StateInspector(FakeBackend(containers={"x": object()}), timeout=1)

        assert await inspector.inspect("x") == InspectionResult(None, False)

    @pytest.mark.asyncio
    async def test_missing_container_raises_not_found(self, backend):
        inspector = StateInspector(backend, timeout=1)

        with pytest.raises(ContainerNotFoundError):
            await inspector.inspect("nope")

    @pytest.mark.asyncio
    async def test_slow_backend_times_out(self):
        class SlowBackend(FakeBackend):
            async def get_container(self, container_id):
                await asyncio.sleep(1)
                return {"state": "running"}

        inspector = StateInspector(SlowBackend(), timeout=0.05)

        with pytest.raises(BackendFailureError, match="timed out"):
            await inspector.inspect("x")


class TestTransitionValidator:
    @pytest.fixture
    def validator(self) -> TransitionValidator:
        return TransitionValidator()

    def test_start_on_running_is_allowed_with_warning(self, validator):
        outcome = validator.validate("web", ContainerOperation.START, "running")

        assert outcome.verdict is ValidationVerdict.ALLOWED_WITH_WARNING
        assert outcome.allowed
        assert outcome.reason == "container is already running"

    @pytest.mark.parametrize("state", ["exited", "stopped"])
    def test_stop_on_stopped_is_allowed_with_warning(self, validator, state):
        outcome = validator.validate("db", ContainerOperation.STOP, state)

        assert outcome.verdict is ValidationVerdict.ALLOWED_WITH_WARNING
        assert outcome.allowed
        assert outcome.reason == "container is already stopped"

    @pytest.mark.parametrize("state", ["running", "exited", "paused", "created", "dead"])
    def test_restart_always_allowed(self, validator, state):
        outcome = validator.validate("web", ContainerOperation.RESTART, state)

        assert outcome.verdict is ValidationVerdict.ALLOWED
        assert outcome.reason is None

    @pytest.mark.parametrize(
        ("operation", "state"),
        [
            (ContainerOperation.START, "exited"),
            (ContainerOperation.START, "created"),
            (ContainerOperation.STOP, "running"),
            (ContainerOperation.STOP, "paused"),
        ],
    )
    def test_ordinary_transitions_allowed(self, validator, operation, state):
        outcome = validator.validate("web", operation, state)

        assert outcome.verdict is ValidationVerdict.ALLOWED
        assert outcome.state == state

    @pytest.mark.parametrize("operation", list(ContainerOperation))
    @pytest.mark.parametrize("state", [None, ""])
    def test_undeterminable_state_rejected(self, validator, operation, state):
        outcome = validator.validate("ghost", operation, state)

        assert outcome.verdict is ValidationVerdict.REJECTED
        assert not outcome.allowed
        assert outcome.reason == "unable to determine container state"
