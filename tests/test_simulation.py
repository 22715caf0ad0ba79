"""
Tests for the Barnes-Hut step loop.
"""

import signal
import warnings

import numpy as np
import pytest

from galaxy_sim import (
    EventType,
    GalaxySimulation,
    InvalidConfigError,
    InvalidParticleError,
    Particle,
    SimulationConfig,
    direct_forces,
)

# =============================================================================
# Test Fixtures
# =============================================================================


def create_two_body():
    """Two unit masses at rest at (-10, 0) and (10, 0)."""
    return [Particle(-10.0, 0.0, mass=1.0), Particle(10.0, 0.0, mass=1.0)]


def create_cluster(n=30, seed=0, extent=500.0):
    """n particles with random positions and velocities."""
    rng = np.random.default_rng(seed)
    return [
        Particle(
            float(rng.uniform(-extent, extent)),
            float(rng.uniform(-extent, extent)),
            float(rng.normal(0.0, 1.0)),
            float(rng.normal(0.0, 1.0)),
            mass=float(rng.uniform(0.5, 2.0)),
        )
        for _ in range(n)
    ]


class Recorder:
    """Snapshot hook that remembers the steps it was called on."""

    def __init__(self):
        self.steps = []
        self.counts = []

    def __call__(self, particles, step):
        self.steps.append(step)
        self.counts.append(len(particles))


class InterruptingParticle(Particle):
    """Particle whose next velocity write raises KeyboardInterrupt once armed."""

    __slots__ = ("armed",)

    def __init__(self, *args, **kwargs):
        self.armed = False
        super().__init__(*args, **kwargs)

    @property
    def vx(self):
        return Particle.vx.__get__(self, type(self))

    @vx.setter
    def vx(self, value):
        if self.armed:
            self.armed = False
            raise KeyboardInterrupt
        Particle.vx.__set__(self, value)


# =============================================================================
# Construction
# =============================================================================


class TestGalaxySimulationSetup:
    """Tests for construction and configuration."""

    def test_default_config(self):
        sim = GalaxySimulation(particles=create_two_body())
        assert sim.config == SimulationConfig()
        assert sim.step == 0
        assert sim.last_tree is None
        assert not sim.running

    def test_overrides(self):
        sim = GalaxySimulation(particles=create_two_body(), steps=5, dt=0.5, theta=0.0)
        assert sim.config.steps == 5
        assert sim.config.dt == 0.5
        assert sim.config.theta == 0.0

    def test_config_is_copied(self):
        """Overrides never modify the caller's configuration."""
        config = SimulationConfig(steps=3)
        sim = GalaxySimulation(particles=[], config=config, steps=7)
        assert config.steps == 3
        assert sim.config.steps == 7

    def test_particles_from_dicts(self):
        sim = GalaxySimulation(particles=[{"x": 1.0, "y": 2.0, "mass": 3.0}])
        p = sim.particles[0]
        assert isinstance(p, Particle)
        assert p.position == (1.0, 2.0)
        assert p.mass == 3.0

    def test_particles_invalid_type(self):
        with pytest.raises(TypeError, match="Particle or dict"):
            GalaxySimulation(particles=[(1.0, 2.0)])

    def test_invalid_config_rejected_early(self):
        """Bad parameters fail at construction, before any step."""
        with pytest.raises(InvalidConfigError, match="dt must be positive"):
            GalaxySimulation(particles=create_two_body(), dt=0.0)
        with pytest.raises(InvalidConfigError, match="steps must be >= 1"):
            GalaxySimulation(particles=create_two_body(), steps=0)

    def test_invalid_particle_rejected_on_run(self):
        sim = GalaxySimulation(particles=[Particle(0.0, 0.0, mass=0.0)], steps=1)
        with pytest.raises(InvalidParticleError, match="mass must be positive"):
            sim.run()
        assert sim.step == 0

    def test_from_config_is_reproducible(self):
        config = SimulationConfig(particle_count=50, steps=2, seed=123)
        a = GalaxySimulation.from_config(config)
        b = GalaxySimulation.from_config(config)
        assert [p.position for p in a.particles] == [p.position for p in b.particles]
        assert len(a.particles) == 50

    def test_from_config_with_rng(self):
        config = SimulationConfig(particle_count=10, steps=1)
        a = GalaxySimulation.from_config(config, rng=np.random.default_rng(5))
        b = GalaxySimulation.from_config(config, rng=np.random.default_rng(5))
        assert [p.velocity for p in a.particles] == [p.velocity for p in b.particles]


# =============================================================================
# Step pipeline
# =============================================================================


class TestStepPipeline:
    """Tests for build / evaluate / integrate."""

    def test_build_tree_covers_world(self):
        sim = GalaxySimulation(particles=create_cluster(), world_size=4000.0)
        tree = sim.build_tree()
        assert tree.root.bounds.size == 4000.0
        assert tree.root.bounds.center_x == 0.0
        assert tree.particle_count == 30
        assert tree.mass == pytest.approx(sum(p.mass for p in sim.particles))

    def test_compute_forces_does_not_mutate(self):
        particles = create_cluster()
        before = [(p.x, p.y, p.vx, p.vy) for p in particles]
        sim = GalaxySimulation(particles=particles)
        sim.compute_forces()
        assert [(p.x, p.y, p.vx, p.vy) for p in particles] == before

    def test_semi_implicit_euler(self):
        """One step applies v += a*dt then x += v*dt using start-of-step forces."""
        particles = create_cluster(n=40, seed=1)
        sim = GalaxySimulation(particles=particles, dt=0.25, steps=10, gravitational_constant=5.0)

        before = [(p.x, p.y, p.vx, p.vy) for p in particles]
        ax, ay = sim.compute_forces(sim.build_tree())

        sim.tick()

        dt = 0.25
        for i, p in enumerate(particles):
            x0, y0, vx0, vy0 = before[i]
            vx1 = vx0 + float(ax[i]) * dt
            vy1 = vy0 + float(ay[i]) * dt
            assert p.vx == vx1
            assert p.vy == vy1
            assert p.x == x0 + vx1 * dt
            assert p.y == y0 + vy1 * dt

    def test_two_body_attract(self):
        """Two bodies at rest move toward each other symmetrically."""
        sim = GalaxySimulation(particles=create_two_body(), gravitational_constant=0.1, steps=1)
        sim.run()

        a, b = sim.particles
        assert a.vx > 0
        assert b.vx < 0
        assert a.vx == -b.vx
        assert a.x == -b.x
        assert a.y == 0.0 and b.y == 0.0
        assert a.vx == pytest.approx(0.1 / 400.0 * 0.1, rel=1e-5)

    def test_momentum_conserved_with_exact_forces(self):
        """theta = 0 gives pairwise-symmetric forces, so momentum is kept."""
        particles = create_cluster(n=20, seed=2)
        px0 = sum(p.mass * p.vx for p in particles)
        py0 = sum(p.mass * p.vy for p in particles)

        sim = GalaxySimulation(particles=particles, theta=0.0, steps=5, gravitational_constant=10.0)
        sim.run()

        px1 = sum(p.mass * p.vx for p in sim.particles)
        py1 = sum(p.mass * p.vy for p in sim.particles)
        assert px1 == pytest.approx(px0, abs=1e-9)
        assert py1 == pytest.approx(py0, abs=1e-9)

    def test_threaded_forces_match_serial(self):
        particles = create_cluster(n=101, seed=3)
        serial = GalaxySimulation(particles=particles, workers=1)
        threaded = GalaxySimulation(particles=particles, workers=4)

        tree = serial.build_tree()
        ax1, ay1 = serial.compute_forces(tree)
        ax2, ay2 = threaded.compute_forces(tree)

        assert np.array_equal(ax1, ax2)
        assert np.array_equal(ay1, ay2)

    def test_more_workers_than_particles(self):
        sim = GalaxySimulation(particles=create_two_body(), workers=8)
        ax, ay = sim.compute_forces()
        assert ax.shape == (2,)
        assert ax[0] > 0 and ax[1] < 0

    def test_direct_mode_matches_theta_zero(self):
        particles = create_cluster(n=25, seed=4)
        tree_sim = GalaxySimulation(particles=particles, theta=0.0)
        direct_sim = GalaxySimulation(particles=particles, use_barnes_hut=False)

        ax1, ay1 = tree_sim.compute_forces()
        ax2, ay2 = direct_sim.compute_forces()

        np.testing.assert_allclose(ax1, ax2, rtol=1e-9, atol=1e-15)
        np.testing.assert_allclose(ay1, ay2, rtol=1e-9, atol=1e-15)

    def test_direct_mode_builds_no_tree(self):
        sim = GalaxySimulation(particles=create_two_body(), use_barnes_hut=False, steps=2)
        sim.run()
        assert sim.last_tree is None
        assert sim.particles[0].vx > 0


class TestDirectForces:
    """Tests for the exact reference evaluator."""

    def test_empty(self):
        ax, ay = direct_forces([], 1.0)
        assert ax.shape == (0,) and ay.shape == (0,)

    def test_two_body(self):
        ax, ay = direct_forces(create_two_body(), 0.1, softening=0.0)
        assert ax[0] == pytest.approx(0.1 / 400.0)
        assert ax[1] == pytest.approx(-0.1 / 400.0)
        assert ay[0] == 0.0 and ay[1] == 0.0

    def test_coincident_particles(self):
        """Zero separation with zero softening contributes nothing."""
        ax, ay = direct_forces([Particle(1.0, 1.0), Particle(1.0, 1.0)], 1.0, softening=0.0)
        assert np.all(np.isfinite(ax)) and np.all(np.isfinite(ay))
        assert ax[0] == 0.0 and ay[0] == 0.0


# =============================================================================
# Loop control
# =============================================================================


class TestRunLoop:
    """Tests for run(), snapshots, events and stopping."""

    def test_runs_configured_steps(self):
        sim = GalaxySimulation(particles=create_cluster(n=10), steps=7)
        sim.run()
        assert sim.step == 7
        assert not sim.running
        assert sim.tick() is True
        assert sim.step == 7

    def test_run_restarts_step_count(self):
        sim = GalaxySimulation(particles=create_two_body(), steps=3)
        sim.run()
        sim.run()
        assert sim.step == 3

    def test_snapshot_cadence(self):
        """Snapshots fire on steps 0, N, 2N, ... with the full particle list."""
        recorder = Recorder()
        sim = GalaxySimulation(
            particles=create_cluster(n=12), steps=25, snapshot_every=10, snapshot=recorder
        )
        sim.run()
        assert recorder.steps == [0, 10, 20]
        assert recorder.counts == [12, 12, 12]

    def test_snapshot_every_step(self):
        recorder = Recorder()
        sim = GalaxySimulation(
            particles=create_two_body(), steps=4, snapshot_every=1, snapshot=recorder
        )
        sim.run()
        assert recorder.steps == [0, 1, 2, 3]

    def test_snapshot_error_propagates(self):
        def failing(particles, step):
            raise OSError("disk full")

        sim = GalaxySimulation(particles=create_two_body(), steps=3, snapshot=failing)
        with pytest.raises(OSError, match="disk full"):
            sim.run()
        assert not sim.running

    def test_events(self):
        events = []
        sim = GalaxySimulation(
            particles=create_two_body(),
            steps=3,
            on_start=lambda e: events.append(("start", e["step"])),
            on_tick=lambda e: events.append(("tick", e["step"])),
            on_end=lambda e: events.append(("end", e["step"])),
        )
        sim.run()
        assert events == [("start", 0), ("tick", 1), ("tick", 2), ("tick", 3), ("end", 3)]

    def test_tick_event_payload(self):
        payloads = []
        sim = GalaxySimulation(particles=create_two_body(), steps=2)
        sim.on("tick", payloads.append)
        sim.run()
        assert payloads[0]["type"] == EventType.tick
        assert payloads[0]["steps"] == 2
        assert payloads[-1]["kinetic_energy"] > 0

    def test_stop_from_callback(self):
        sim = GalaxySimulation(particles=create_two_body(), steps=100)
        sim.on(EventType.tick, lambda e: sim.stop() if e["step"] == 3 else None)
        sim.run()
        assert sim.step == 3

    def test_keyboard_interrupt_between_steps(self):
        """An interrupt stops at a step boundary and still fires the end event."""
        ended = []

        def interrupt(event):
            if event["step"] == 2:
                raise KeyboardInterrupt

        sim = GalaxySimulation(
            particles=create_two_body(),
            steps=10,
            on_tick=interrupt,
            on_end=lambda e: ended.append(e["step"]),
        )
        with pytest.raises(KeyboardInterrupt):
            sim.run()
        assert sim.step == 2
        assert ended == [2]
        assert not sim.running
        a, b = sim.particles
        assert a.x == -b.x

    def test_interrupt_during_integration_rolls_back_step(self):
        """A step interrupted while writing particles leaves none of it applied."""
        ended = []
        a = Particle(-10.0, 0.0)
        b = InterruptingParticle(10.0, 0.0)
        b.armed = True

        sim = GalaxySimulation(
            particles=[a, b],
            steps=5,
            on_end=lambda e: ended.append(e["step"]),
        )
        with pytest.raises(KeyboardInterrupt):
            sim.run()

        assert sim.step == 0
        assert ended == [0]
        assert (a.x, a.y, a.vx, a.vy) == (-10.0, 0.0, 0.0, 0.0)
        assert (b.x, b.y, b.vx, b.vy) == (10.0, 0.0, 0.0, 0.0)

    def test_sigint_stops_at_step_boundary(self):
        """SIGINT during a step lets it finish, then raises KeyboardInterrupt."""
        handler_before = signal.getsignal(signal.SIGINT)
        ended = []

        def send_sigint(event):
            if event["step"] == 1:
                signal.raise_signal(signal.SIGINT)

        sim = GalaxySimulation(
            particles=create_two_body(),
            steps=10,
            on_tick=send_sigint,
            on_end=lambda e: ended.append(e["step"]),
        )
        with pytest.raises(KeyboardInterrupt):
            sim.run()

        assert sim.step == 1
        assert ended == [1]
        assert signal.getsignal(signal.SIGINT) is handler_before
        a, b = sim.particles
        assert a.x == -b.x
        assert a.vx == -b.vx

    def test_run_applies_config_overrides(self):
        sim = GalaxySimulation(particles=create_two_body(), steps=10)
        sim.run(steps=3, dt=0.05)
        assert sim.step == 3
        assert sim.config.steps == 3
        assert sim.config.dt == 0.05

    def test_run_rejects_unknown_override(self):
        sim = GalaxySimulation(particles=create_two_body(), steps=2)
        with pytest.raises(TypeError):
            sim.run(step_count=3)
        assert sim.step == 0

    def test_run_rejects_invalid_override(self):
        sim = GalaxySimulation(particles=create_two_body(), steps=2)
        with pytest.raises(InvalidConfigError):
            sim.run(dt=-1.0)
        assert sim.config.dt == 0.1

    def test_tick_without_run(self):
        sim = GalaxySimulation(particles=create_two_body(), steps=2)
        assert sim.tick() is False
        assert sim.tick() is True
        assert sim.last_tree is not None


# =============================================================================
# Out-of-region particles
# =============================================================================


class TestOutOfRegion:
    """Particles outside the root region are dropped, not errors."""

    def test_warns_for_particles_outside_at_start(self):
        particles = create_two_body() + [Particle(5000.0, 0.0)]
        sim = GalaxySimulation(particles=particles, world_size=4000.0, steps=1)
        with pytest.warns(UserWarning, match="outside the root region"):
            sim.run()
        assert sim.dropped == 1
        assert sim.last_tree.particle_count == 2

    def test_no_warning_when_inside(self):
        sim = GalaxySimulation(particles=create_two_body(), steps=1)
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            sim.run()
        assert sim.dropped == 0

    def test_escaping_particle_stays_in_simulation(self):
        runaway = Particle(1990.0, 0.0, vx=500.0)
        particles = create_two_body() + [runaway]
        sim = GalaxySimulation(particles=particles, world_size=4000.0, dt=0.1, steps=3)
        sim.run()

        assert sim.dropped == 1
        assert len(sim.particles) == 3
        assert runaway.x > 2000.0

    def test_dropped_particle_still_feels_tree(self):
        """A particle outside the region is pulled by the mass inside it."""
        massive = Particle(0.0, 0.0, mass=1e6)
        outside = Particle(2500.0, 0.0)
        sim = GalaxySimulation(
            particles=[massive, outside],
            world_size=4000.0,
            gravitational_constant=1.0,
            dt=0.1,
            steps=1,
        )
        with pytest.warns(UserWarning, match="outside the root region"):
            sim.run()

        expected_vx = -1.0 * 1e6 / (2500.0 + 1e-5) ** 2 * 0.1
        assert sim.dropped == 1
        assert outside.vx == pytest.approx(expected_vx, rel=1e-9)
        assert outside.vx == pytest.approx(-0.016, rel=1e-6)
        assert massive.vx == 0.0

    def test_dropped_particle_exerts_no_force(self):
        outside = Particle(3000.0, 0.0, mass=1e6)
        inside = Particle(0.0, 0.0)
        with pytest.warns(UserWarning):
            sim = GalaxySimulation(particles=[inside, outside], world_size=4000.0, steps=1).run()
        assert inside.vx == 0.0
        assert sim.dropped == 1
