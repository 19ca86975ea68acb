import cv2
import numpy as np
import pytest

from trackcal.errors import CardinalityError
from trackcal.geometry import (
    cheirality_mask,
    get_3d_position,
    get_3d_position_pair,
    point_depths,
    project_points,
    triangulate_linear,
)
from trackcal.geometry_utils.triangulation import orient_homogeneous


def test_two_view_round_trip(stereo_scene):
    P1, P2 = stereo_scene.projections
    x1, x2 = stereo_scene.observations
    for i in range(stereo_scene.X.shape[0]):
        X = get_3d_position([P1, P2], [x1[i], x2[i]])
        np.testing.assert_allclose(X, stereo_scene.X[i], atol=1e-8)


def test_multi_view_round_trip(multi_scene):
    for i in range(multi_scene.X.shape[0]):
        obs = [o[i] for o in multi_scene.observations]
        X = get_3d_position(multi_scene.projections, obs)
        np.testing.assert_allclose(X, multi_scene.X[i], atol=1e-8)


def test_float32_round_trip(stereo_scene):
    P = [p.astype(np.float32) for p in stereo_scene.projections]
    obs = [o[0].astype(np.float32) for o in stereo_scene.observations]
    X = get_3d_position(P, obs)
    assert X.dtype == np.float32
    ref = stereo_scene.X[0]
    assert np.linalg.norm(X - ref) <= 1e-3 * max(1.0, np.linalg.norm(ref))


def test_pair_overload_matches_general_form(stereo_scene):
    P1, P2 = stereo_scene.projections
    x1, x2 = stereo_scene.observations
    np.testing.assert_allclose(
        get_3d_position_pair(P1, P2, x1[3], x2[3]),
        triangulate_linear([P1, P2], [x1[3], x2[3]]),
        atol=1e-8,
    )


def test_agrees_with_opencv(stereo_scene, rng):
    P1, P2 = stereo_scene.projections
    x1 = stereo_scene.observations[0] + rng.normal(0, 0.3, size=stereo_scene.observations[0].shape)
    x2 = stereo_scene.observations[1] + rng.normal(0, 0.3, size=stereo_scene.observations[1].shape)

    Xh = cv2.triangulatePoints(P1, P2, x1.T, x2.T)
    X_cv = (Xh[:3] / Xh[3]).T
    X_ours = np.stack([get_3d_position_pair(P1, P2, a, b) for a, b in zip(x1, x2)])
    np.testing.assert_allclose(X_ours, X_cv, atol=1e-4)


def test_refinement_does_not_increase_residual(multi_scene, rng):
    i = 4
    obs = [o[i] + rng.normal(0, 1.0, size=2) for o in multi_scene.observations]

    X_lin, r_lin = get_3d_position(multi_scene.projections, obs, return_residual=True)
    X_ref, r_ref = get_3d_position(multi_scene.projections, obs, refine=True, return_residual=True)

    assert r_ref <= r_lin + 1e-9
    assert np.linalg.norm(X_ref - multi_scene.X[i]) < 0.1


def test_refine_without_residual_returns_point_only(multi_scene):
    obs = [o[0] for o in multi_scene.observations]
    X = get_3d_position(multi_scene.projections, obs, refine=True)
    assert X.shape == (3,)
    np.testing.assert_allclose(X, multi_scene.X[0], atol=1e-6)


def test_single_projection_is_rejected(stereo_scene):
    with pytest.raises(CardinalityError):
        get_3d_position(stereo_scene.projections[:1], stereo_scene.observations[0][:1])


def test_mismatched_lengths_are_rejected(multi_scene):
    obs = [o[0] for o in multi_scene.observations[:3]]
    with pytest.raises(CardinalityError):
        get_3d_position(multi_scene.projections, obs)


def test_orientation_fix_only_flips_the_sign(multi_scene):
    Xh = -3.0 * np.append(multi_scene.X[2], 1.0)
    fixed = orient_homogeneous(Xh, multi_scene.projections[0])
    np.testing.assert_array_equal(fixed, -Xh)
    for P in multi_scene.projections:
        assert P[2] @ fixed > 0
    np.testing.assert_allclose(fixed[:3] / fixed[3], multi_scene.X[2])
    np.testing.assert_array_equal(orient_homogeneous(fixed, multi_scene.projections[0]), fixed)


def test_orientation_fix_keeps_point_behind_camera(multi_scene):
    P = multi_scene.projections[0]
    behind = np.append(multi_scene.poses[0].inverse() * np.array([0.1, -0.2, -2.0]), 1.0)
    assert P[2] @ behind < 0
    fixed = orient_homogeneous(behind, P)
    assert P[2] @ fixed > 0
    np.testing.assert_allclose(fixed[:3] / fixed[3], behind[:3])
    assert not cheirality_mask(fixed[None, :3] / fixed[3], P).any()


def test_triangulated_points_have_positive_depth(multi_scene):
    X = np.stack([
        get_3d_position(multi_scene.projections, [o[i] for o in multi_scene.observations])
        for i in range(multi_scene.X.shape[0])
    ])
    for P in multi_scene.projections:
        assert (point_depths(P, X) > 0).all()
        assert cheirality_mask(X, P).all()


def test_reprojection_of_result(stereo_scene):
    P1, P2 = stereo_scene.projections
    x1, x2 = stereo_scene.observations
    X = get_3d_position([P1, P2], [x1[5], x2[5]])
    np.testing.assert_allclose(project_points(P2, X), x2[5], atol=1e-6)
