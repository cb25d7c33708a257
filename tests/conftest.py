"""Pytest configuration and shared fixtures for PipeFlow tests."""

import pytest

from pipeflow import (
    DEFAULT_SETTINGS,
    EditorSession,
    ModelParser,
    SyncCoordinator,
    TextPatcher,
)

SCENARIO_DOC = (
    '<Adapter name="A"><Pipeline firstPipe="P1">'
    '<FixedResultPipe name="P1" x="10" y="10"><Forward name="success" path="Exit"/>'
    "</FixedResultPipe>"
    '<Exit path="Exit" state="success" code="200"/></Pipeline></Adapter>'
)

ORDERS_DOC = """<Configuration name="Demo">
    <Adapter name="Orders" description="Order intake">
        <Receiver name="OrdersReceiver" x="600" y="400">
            <JavaListener name="OrdersListener"/>
        </Receiver>
        <Pipeline firstPipe="Validate">
            <XmlValidatorPipe name="Validate" x="100" y="250">
                <Forward name="success" path="Transform"/>
                <Forward name="failure" path="Error"/>
            </XmlValidatorPipe>
            <XsltPipe name="Transform" x="100" y="500" xpathExpression="/order/lines/line">
                <Forward name="success" path="Exit"/>
            </XsltPipe>
            <Exit path="Exit" state="success" code="200" x="400" y="750"/>
            <Exit path="Error" state="error" code="500" x="700" y="750"/>
        </Pipeline>
    </Adapter>
</Configuration>
"""

UNPLACED_DOC = """<Configuration>
    <Adapter name="Chain">
        <Receiver name="ChainReceiver">
            <ApiListener name="ChainListener"/>
        </Receiver>
        <Pipeline firstPipe="First">
            <EchoPipe name="First"/>
            <EchoPipe name="Second">
                <Forward name="success" path="Exit"/>
            </EchoPipe>
            <Exit path="Exit" state="success"/>
        </Pipeline>
    </Adapter>
</Configuration>
"""

TWO_ADAPTERS_DOC = """<Configuration>
    <Adapter name="Alpha">
        <Pipeline>
            <EchoPipe name="Shared" x="100" y="100">
                <Forward name="success" path="Exit"/>
            </EchoPipe>
            <Exit path="Exit" state="success" x="100" y="400"/>
        </Pipeline>
    </Adapter>
    <Adapter name="Beta">
        <Pipeline>
            <EchoPipe name="Shared" x="300" y="300">
                <Forward name="success" path="Done"/>
            </EchoPipe>
            <Exit path="Done" state="success" x="300" y="600"/>
        </Pipeline>
    </Adapter>
</Configuration>
"""

LEGACY_DOC = """<ibis>
  <adapter name="Legacy">
    <receiver className="nl.nn.adapterframework.receivers.GenericReceiver" name="LegacyReceiver">
      <listener className="nl.nn.adapterframework.receivers.JavaListener" name="LegacyListener"/>
    </receiver>
    <pipeline firstPipe="Echo">
      <exits>
        <exit path="EXIT" state="success"/>
      </exits>
      <pipe name="Echo" className="nl.nn.adapterframework.pipes.EchoPipe">
        <forward name="success" path="EXIT"/>
      </pipe>
    </pipeline>
  </adapter>
</ibis>
"""


class FakeClock:
    """Manually advanced clock for debounce tests."""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def scenario_doc():
    """Single adapter, one pipe at (10, 10) forwarding to one exit."""
    return SCENARIO_DOC


@pytest.fixture
def orders_doc():
    """Formatted configuration with a receiver, two pipes and two exits."""
    return ORDERS_DOC


@pytest.fixture
def unplaced_doc():
    """Configuration whose pipes and exits have no coordinates."""
    return UNPLACED_DOC


@pytest.fixture
def two_adapters_doc():
    """Configuration with two adapters sharing a pipe name."""
    return TWO_ADAPTERS_DOC


@pytest.fixture
def legacy_doc():
    """Configuration in the old className syntax with an exits block."""
    return LEGACY_DOC


@pytest.fixture
def settings():
    """Default engine settings."""
    return DEFAULT_SETTINGS


@pytest.fixture
def parser():
    """Default ModelParser instance."""
    return ModelParser()


@pytest.fixture
def patcher():
    """TextPatcher searching the whole document."""
    return TextPatcher()


@pytest.fixture
def clock():
    """Fake clock starting at zero."""
    return FakeClock()


@pytest.fixture
def coordinator(clock):
    """Empty coordinator on a fake clock."""
    coordinator = SyncCoordinator(session=EditorSession(), clock=clock)
    yield coordinator
    coordinator.close()
