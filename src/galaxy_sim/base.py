"""
Base class for step-driven simulations.

This module provides the abstract base that defines the common interface
and shared functionality of the simulation loop:

- IterativeSimulation: particle management, event system, tick loop, stop
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Callable, Optional, Sequence

if TYPE_CHECKING:
    from typing_extensions import Self

from .config import SimulationConfig
from .types import Event, EventType, Particle, ParticleLike
from .validation import validate_particles


class IterativeSimulation(ABC):
    """
    Abstract base class for step-driven simulations.

    Provides shared infrastructure:
    - Particle list management via properties
    - Configuration with validation
    - Event system (start/tick/end events)
    - Tick-based iteration loop with stop()

    Example:
        sim = SomeSimulation(
            particles=particles,
            config=SimulationConfig(steps=100),
            on_tick=lambda e: print(e["step"]),
        )
        sim.run()
    """

    def __init__(
        self,
        *,
        particles: Optional[Sequence[ParticleLike]] = None,
        config: Optional[SimulationConfig] = None,
        on_start: Optional[Callable[[Optional[Event]], None]] = None,
        on_tick: Optional[Callable[[Optional[Event]], None]] = None,
        on_end: Optional[Callable[[Optional[Event]], None]] = None,
        **overrides: Any,
    ) -> None:
        """
        Initialize simulation.

        Args:
            particles: Particles (Particle objects or dicts of Particle fields)
            config: Run configuration. Defaults to SimulationConfig().
            on_start: Callback for start event
            on_tick: Callback for tick event
            on_end: Callback for end event
            **overrides: SimulationConfig fields to override

        Raises:
            InvalidConfigError: If the resulting configuration is invalid.
        """
        self._particles: list[Particle] = []
        self._events: dict[EventType, Callable[[Optional[Event]], None]] = {}
        self._running: bool = False
        self._step: int = 0

        base = config if config is not None else SimulationConfig()
        self._config: SimulationConfig = base.replace(**overrides)

        if particles is not None:
            self.particles = particles

        if on_start:
            self._events[EventType.start] = on_start
        if on_tick:
            self._events[EventType.tick] = on_tick
        if on_end:
            self._events[EventType.end] = on_end

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def particles(self) -> list[Particle]:
        """Get the list of particles."""
        return self._particles

    @particles.setter
    def particles(self, value: Sequence[ParticleLike]) -> None:
        """Set particles from a sequence of Particle objects or dicts."""
        self._particles = []
        for data in value:
            if isinstance(data, Particle):
                self._particles.append(data)
            elif isinstance(data, dict):
                self._particles.append(Particle(**data))
            else:
                raise TypeError(f"Expected Particle or dict, got {type(data).__name__}")

    @property
    def config(self) -> SimulationConfig:
        """Get the run configuration."""
        return self._config

    @property
    def step(self) -> int:
        """Number of completed steps."""
        return self._step

    @property
    def running(self) -> bool:
        return self._running

    # -------------------------------------------------------------------------
    # Event System
    # -------------------------------------------------------------------------

    def on(self, event: EventType | str, callback: Callable[[Optional[Event]], None]) -> Self:
        """
        Subscribe to a simulation event.

        Args:
            event: Event type (EventType enum or string name)
            callback: Function to call when event fires

        Returns:
            self (for chaining)
        """
        if isinstance(event, str):
            event = EventType[event]
        self._events[event] = callback
        return self

    def trigger(self, event: Event) -> None:
        """
        Trigger an event, calling the registered callback.

        Args:
            event: Event payload with type and optional data
        """
        event_type = event.get("type")
        if event_type is not None and event_type in self._events:
            self._events[event_type](event)

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def validate(self) -> Self:
        """
        Validate configuration and particles.

        Called automatically by run() but can be called early for fail-fast
        behavior.

        Returns:
            self (for chaining)

        Raises:
            InvalidConfigError: If a configuration parameter is out of range.
            InvalidParticleError: If any particle has a non-positive mass.
        """
        self._config.validate()
        validate_particles(self._particles, strict=True)
        return self

    # -------------------------------------------------------------------------
    # Lifecycle Methods
    # -------------------------------------------------------------------------

    @abstractmethod
    def tick(self) -> bool:
        """
        Perform one step of the simulation.

        Returns:
            True if done, False if more steps are needed.
        """
        pass

    def kick(self) -> None:
        """Run tick() repeatedly until done or stopped."""
        while self._running:
            if self.tick():
                break

    @abstractmethod
    def run(self, **kwargs: Any) -> Self:
        """
        Run the simulation.

        Returns:
            self (for chaining)
        """
        pass

    def stop(self) -> Self:
        """Stop the loop after the current step."""
        self._running = False
        return self


__all__ = ["IterativeSimulation"]
