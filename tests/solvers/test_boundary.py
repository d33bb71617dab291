"""Tests for boundary-condition validation, ghost updates and convection."""

import logging

import numpy as np
import pytest

from meshing.cartesian_mesh import CartesianMesh
from solvers.datastructures import BoundaryCondition
from solvers.errors import AssemblyError
from solvers.navier_stokes.assembly import laplacian
from solvers.navier_stokes.boundary import BoundaryGhosts, boundary_table, periodic_directions
from solvers.navier_stokes.explicit_terms import convective_term


class TestBoundaryValidation:
    """Unsupported or inconsistent conditions raise AssemblyError."""

    def test_valid_table(self, cavity_flow):
        table = boundary_table(cavity_flow, 2)
        assert len(table) == 4
        assert table[(1, 1)][0][1] == 1.0

    def test_missing_location(self, cavity_flow):
        cavity_flow.boundary_conditions = cavity_flow.boundary_conditions[:3]
        with pytest.raises(AssemblyError, match="Missing"):
            boundary_table(cavity_flow, 2)

    def test_duplicate_location(self, cavity_flow):
        cavity_flow.boundary_conditions.append(BoundaryCondition("xMinus", ["DIRICHLET"] * 2, [0.0, 0.0]))
        with pytest.raises(AssemblyError, match="more than once"):
            boundary_table(cavity_flow, 2)

    def test_unknown_type(self, flow_factory):
        flow = flow_factory(2, {"xPlus": "SLIP"})
        with pytest.raises(AssemblyError, match="Unsupported"):
            boundary_table(flow, 2)

    def test_periodic_on_one_side(self, flow_factory):
        flow = flow_factory(2, {"xMinus": "PERIODIC"})
        with pytest.raises(AssemblyError, match="both sides"):
            boundary_table(flow, 2)

    def test_periodic_on_some_components(self, flow_factory):
        flow = flow_factory(2, {"xMinus": "PERIODIC", "xPlus": "PERIODIC"})
        flow.boundary_conditions[0].types = ["PERIODIC", "DIRICHLET"]
        with pytest.raises(AssemblyError, match="every component"):
            boundary_table(flow, 2)

    def test_wrong_number_of_components(self, cavity_flow):
        cavity_flow.boundary_conditions[0].values = [0.0]
        with pytest.raises(AssemblyError, match="exactly 2"):
            boundary_table(cavity_flow, 2)

    def test_third_direction_in_2d(self, cavity_flow):
        cavity_flow.boundary_conditions.append(BoundaryCondition("zMinus", ["DIRICHLET"] * 2, [0.0, 0.0]))
        with pytest.raises(AssemblyError, match="Unknown boundary location"):
            boundary_table(cavity_flow, 2)

    def test_dimension_mismatch(self, cavity_flow):
        with pytest.raises(AssemblyError):
            boundary_table(cavity_flow, 3)

    def test_mesh_periodicity_must_match(self, cavity_flow):
        mesh = CartesianMesh.uniform((8, 8), periodic=[True, False])
        with pytest.raises(AssemblyError, match="periodicity"):
            BoundaryGhosts(mesh, cavity_flow)

    def test_periodic_directions(self, flow_factory):
        flow = flow_factory(3, {"yMinus": "PERIODIC", "yPlus": "PERIODIC"})
        assert periodic_directions(flow) == [False, True, False]


class TestGhostUpdates:
    """Ghost update rules."""

    def _velocity(self, mesh, value):
        return [np.full(l.shape, value) for l in mesh.velocity_layouts]

    def test_dirichlet(self, cavity_mesh, cavity_flow):
        ghosts = BoundaryGhosts(cavity_mesh, cavity_flow)
        ghosts.initialize(self._velocity(cavity_mesh, 0.3))
        assert np.all(ghosts.ghosts[(0, 1, 1)] == 1.0)
        assert np.all(ghosts.ghosts[(1, 1, 1)] == 0.0)
        ghosts.update(self._velocity(cavity_mesh, 0.7), dt=0.1)
        assert np.all(ghosts.ghosts[(0, 1, 1)] == 1.0)

    def test_neumann(self, stretched_mesh, flow_factory):
        flow = flow_factory(2, {"xPlus": "NEUMANN"}, {"xPlus": [0.5, 2.0]})
        ghosts = BoundaryGhosts(stretched_mesh, flow)
        ghosts.update(self._velocity(stretched_mesh, 1.0), dt=0.1)

        h_u = stretched_mesh.velocity_layout(0).h_plus[0][-1]
        h_v = stretched_mesh.velocity_layout(1).h_plus[0][-1]
        assert np.allclose(ghosts.ghosts[(0, 0, 1)], 1.0 + 0.5 * h_u)
        assert np.allclose(ghosts.ghosts[(1, 0, 1)], 1.0 + 2.0 * h_v)
        assert np.isclose(h_v, 0.5 * stretched_mesh.widths[0][-1])

    def test_convective(self, stretched_mesh, flow_factory):
        flow = flow_factory(2, {"xPlus": "CONVECTIVE"}, {"xPlus": [1.0, 1.0]})
        ghosts = BoundaryGhosts(stretched_mesh, flow)
        ghosts.initialize(self._velocity(stretched_mesh, 1.0))
        assert np.allclose(ghosts.ghosts[(0, 0, 1)], 1.0)

        dt = 0.01
        ghosts.update(self._velocity(stretched_mesh, 2.0), dt=dt)
        h = stretched_mesh.velocity_layout(0).h_plus[0][-1]
        assert np.allclose(ghosts.ghosts[(0, 0, 1)], 1.0 - dt * (1.0 - 2.0) / h)

    def test_periodic_has_no_ghosts(self, mixed_mesh, flow_factory):
        flow = flow_factory(2, {"xMinus": "PERIODIC", "xPlus": "PERIODIC"})
        ghosts = BoundaryGhosts(mixed_mesh, flow)
        assert {key[1] for key in ghosts.ghosts} == {1}


class TestMassCorrection:
    """Outflow ghosts absorb the net boundary flux."""

    def _rest(self, mesh):
        return [np.zeros(l.shape) for l in mesh.velocity_layouts]

    def test_convective_outflow_carries_inflow(self, cavity_mesh, flow_factory):
        flow = flow_factory(2, {"xPlus": "CONVECTIVE"}, {"xMinus": [1.0, 0.0], "xPlus": [1.0, 1.0]})
        ghosts = BoundaryGhosts(cavity_mesh, flow)
        ghosts.initialize(self._rest(cavity_mesh))
        assert np.isclose(ghosts.boundary_outflow().sum(), -1.0)

        net = ghosts.correct_mass()
        assert np.isclose(net, -1.0)
        assert np.allclose(ghosts.ghosts[(0, 0, 1)], 1.0)
        assert abs(ghosts.boundary_outflow().sum()) < 1e-14
        # transverse ghosts are left alone
        assert np.all(ghosts.ghosts[(1, 0, 1)] == 0.0)

    def test_shift_shared_by_area(self, cavity_mesh, flow_factory):
        flow = flow_factory(
            2,
            {"xPlus": "CONVECTIVE", "yPlus": "NEUMANN"},
            {"xMinus": [1.0, 0.0], "xPlus": [1.0, 1.0]},
        )
        ghosts = BoundaryGhosts(cavity_mesh, flow)
        ghosts.initialize(self._rest(cavity_mesh))
        ghosts.correct_mass()

        assert np.allclose(ghosts.ghosts[(0, 0, 1)], 0.5)
        assert np.allclose(ghosts.ghosts[(1, 1, 1)], 0.5)
        assert abs(ghosts.boundary_outflow().sum()) < 1e-14

    def test_outflow_on_minus_side(self, stretched_mesh, flow_factory):
        flow = flow_factory(2, {"xMinus": "CONVECTIVE"}, {"xMinus": [1.0, 1.0], "xPlus": [-2.0, 0.0]})
        ghosts = BoundaryGhosts(stretched_mesh, flow)
        ghosts.initialize(self._rest(stretched_mesh))
        ghosts.correct_mass()

        assert np.allclose(ghosts.ghosts[(0, 0, 0)], -2.0)
        assert abs(ghosts.boundary_outflow().sum()) < 1e-14

    def test_balanced_flow_is_unchanged(self, cavity_mesh, cavity_flow):
        ghosts = BoundaryGhosts(cavity_mesh, cavity_flow)
        ghosts.initialize(self._rest(cavity_mesh))
        before = ghosts.snapshot()
        assert ghosts.correct_mass() == 0.0
        for key, ghost in before.items():
            assert np.array_equal(ghosts.ghosts[key], ghost)

    def test_imbalance_without_outflow_boundary_is_reported(self, cavity_mesh, flow_factory, caplog):
        flow = flow_factory(2, {}, {"xMinus": [1.0, 0.0]})
        ghosts = BoundaryGhosts(cavity_mesh, flow)
        ghosts.initialize(self._rest(cavity_mesh))

        with caplog.at_level(logging.WARNING):
            ghosts.correct_mass()
            ghosts.correct_mass()
        warnings = [r for r in caplog.records if "net outflow" in r.getMessage()]
        assert len(warnings) == 1
        assert np.all(ghosts.ghosts[(0, 0, 0)] == 1.0)

    def test_snapshot_restore(self, stretched_mesh, flow_factory):
        flow = flow_factory(2, {"xPlus": "CONVECTIVE"}, {"xPlus": [1.0, 1.0]})
        ghosts = BoundaryGhosts(stretched_mesh, flow)
        ghosts.initialize([np.ones(l.shape) for l in stretched_mesh.velocity_layouts])
        saved = ghosts.snapshot()

        ghosts.update([np.full(l.shape, 3.0) for l in stretched_mesh.velocity_layouts], dt=0.01)
        assert not np.allclose(ghosts.ghosts[(0, 0, 1)], saved[(0, 0, 1)])
        ghosts.restore(saved)
        for key, ghost in saved.items():
            assert np.array_equal(ghosts.ghosts[key], ghost)


class TestBoundaryContributions:
    """Laplacian ghost terms, boundary outflow and padded arrays."""

    def test_constant_field_has_zero_laplacian(self, stretched_mesh, flow_factory):
        flow = flow_factory(2, {}, {loc: [1.0, 1.0] for loc in ("xMinus", "xPlus", "yMinus", "yPlus")})
        ghosts = BoundaryGhosts(stretched_mesh, flow)
        ghosts.initialize([np.ones(l.shape) for l in stretched_mesh.velocity_layouts])
        u = np.ones(stretched_mesh.n_fluxes)
        result = laplacian(stretched_mesh) @ u + ghosts.laplacian_contribution()
        assert np.allclose(result, 0.0)

    def test_boundary_outflow(self, stretched_mesh, flow_factory):
        flow = flow_factory(2, {}, {"xMinus": [1.0, 0.0], "xPlus": [1.0, 0.0]})
        ghosts = BoundaryGhosts(stretched_mesh, flow)
        ghosts.initialize([np.zeros(l.shape) for l in stretched_mesh.velocity_layouts])
        outflow = ghosts.boundary_outflow()

        widths_y = stretched_mesh.widths[1]
        assert np.allclose(outflow[0, :], -widths_y)
        assert np.allclose(outflow[-1, :], widths_y)
        assert np.allclose(outflow[1:-1, :], 0.0)
        assert np.isclose(outflow.sum(), 0.0)

    def test_padded_arrays(self, mixed_mesh, flow_factory):
        flow = flow_factory(2, {"xMinus": "PERIODIC", "xPlus": "PERIODIC"}, {"yPlus": [3.0, 0.0]})
        ghosts = BoundaryGhosts(mixed_mesh, flow)
        u = np.arange(mixed_mesh.velocity_layout(0).size, dtype=float).reshape(mixed_mesh.velocity_layout(0).shape)
        v = np.zeros(mixed_mesh.velocity_layout(1).shape)
        ghosts.initialize([u, v])

        P = ghosts.padded([u, v])[0]
        assert P.shape == (u.shape[0] + 2, u.shape[1] + 2)
        assert np.all(P[1:-1, 1:-1] == u)
        assert np.all(P[1:-1, -1] == 3.0)
        assert np.all(P[0, 1:-1] == u[-1, :])
        assert np.all(P[-1, 1:-1] == u[0, :])
        # Corner filled by the periodic wrap of the ghost row
        assert P[0, -1] == 3.0


class TestConvection:
    """Explicit convection term."""

    def test_uniform_periodic_flow_has_no_convection(self, periodic_flow_factory):
        mesh = CartesianMesh.uniform((6, 5, 4), periodic=[True, True, True])
        flow = periodic_flow_factory(3, [1.0, -0.5, 2.0])
        ghosts = BoundaryGhosts(mesh, flow)
        velocity = [np.full(l.shape, u0) for l, u0 in zip(mesh.velocity_layouts, flow.initial_velocity)]
        H = convective_term(mesh, ghosts.padded(velocity))
        assert all(np.allclose(h, 0.0) for h in H)

    def test_uniform_flow_through_channel(self, stretched_mesh, flow_factory):
        """Uniform u with matching inflow and outflow ghosts is not convected."""
        values = {"xMinus": [1.0, 0.0], "xPlus": [1.0, 0.0], "yMinus": [1.0, 0.0], "yPlus": [1.0, 0.0]}
        flow = flow_factory(2, {}, values)
        ghosts = BoundaryGhosts(stretched_mesh, flow)
        velocity = [np.ones(stretched_mesh.velocity_layout(0).shape), np.zeros(stretched_mesh.velocity_layout(1).shape)]
        ghosts.initialize(velocity)
        H = convective_term(stretched_mesh, ghosts.padded(velocity))
        assert np.allclose(H[0], 0.0)
        assert np.allclose(H[1], 0.0)

    def test_shapes(self, mixed_mesh, flow_factory):
        flow = flow_factory(2, {"xMinus": "PERIODIC", "xPlus": "PERIODIC"})
        ghosts = BoundaryGhosts(mixed_mesh, flow)
        rng = np.random.default_rng(0)
        velocity = [rng.standard_normal(l.shape) for l in mixed_mesh.velocity_layouts]
        ghosts.initialize(velocity)
        H = convective_term(mixed_mesh, ghosts.padded(velocity))
        assert [h.shape for h in H] == [l.shape for l in mixed_mesh.velocity_layouts]
