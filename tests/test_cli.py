import json

import numpy as np

from conftest import make_pivot_poses
from scripts.run_calibration import build_config_from_args, build_parser, main
from trackcal.io.pointcloud_io import read_ply


def _write_poses(path, poses):
    lines = [" ".join(repr(float(v)) for v in list(p.quaternion()) + list(p.t)) for p in poses]
    path.write_text("\n".join(lines) + "\n")


def test_tooltip_command(tmp_path, rng, tip_truth):
    pw, pm = tip_truth
    poses_file = tmp_path / "pivot.txt"
    _write_poses(poses_file, make_pivot_poses(rng, pw, pm, n=15))
    out = tmp_path / "out" / "tip.json"

    rc = main(["tooltip", "--poses", str(poses_file), "--seed", "0", "--min_inliers", "5", "--output", str(out)])

    assert rc == 0
    d = json.loads(out.read_text())
    np.testing.assert_allclose(d["world_point"], pw, atol=1e-5)
    assert d["num_inliers"] == 15


def test_triangulate_command(tmp_path, capsys, multi_scene):
    files = []
    for i, P in enumerate(multi_scene.projections):
        f = tmp_path / f"P{i}.txt"
        np.savetxt(f, P)
        files.append(str(f))
    obs = tmp_path / "obs.txt"
    np.savetxt(obs, np.stack([o[0] for o in multi_scene.observations]), fmt="%.17g")

    rc = main(["triangulate", "--projections", *files, "--points", str(obs), "--refine"])

    assert rc == 0
    X = np.array([float(v) for v in capsys.readouterr().out.split()])
    np.testing.assert_allclose(X, multi_scene.X[0], atol=1e-6)


def test_triangulate_cardinality_error_exit_code(tmp_path, multi_scene):
    f = tmp_path / "P0.txt"
    np.savetxt(f, multi_scene.projections[0])
    obs = tmp_path / "obs.txt"
    np.savetxt(obs, multi_scene.observations[0][:1])

    assert main(["triangulate", "--projections", str(f), "--points", str(obs)]) == 1


def test_reconstruct_command(tmp_path, stereo_scene):
    P1, P2 = stereo_scene.projections
    x1, x2 = stereo_scene.observations
    for name, arr in (("P1.txt", P1), ("P2.txt", P2), ("a.txt", x1[:6]), ("b.txt", x2[:6][::-1])):
        np.savetxt(tmp_path / name, arr, fmt="%.17g")
    out = tmp_path / "points.ply"

    rc = main([
        "reconstruct",
        "--P1", str(tmp_path / "P1.txt"), "--P2", str(tmp_path / "P2.txt"),
        "--points1", str(tmp_path / "a.txt"), "--points2", str(tmp_path / "b.txt"),
        "--output", str(out),
    ])

    assert rc == 0
    np.testing.assert_allclose(read_ply(out), stereo_scene.X[:6], atol=1e-5)


def test_fundamental_command(tmp_path, capsys, stereo_scene):
    x1, x2 = stereo_scene.observations
    np.savetxt(tmp_path / "a.txt", x1, fmt="%.17g")
    np.savetxt(tmp_path / "b.txt", x2, fmt="%.17g")

    rc = main(["fundamental", "--points1", str(tmp_path / "a.txt"), "--points2", str(tmp_path / "b.txt")])

    assert rc == 0
    F = np.array([float(v) for v in capsys.readouterr().out.split()]).reshape(3, 3)
    assert np.isclose(np.linalg.norm(F), 1.0)
    assert np.linalg.svd(F, compute_uv=False)[2] < 1e-6


def test_cli_overrides_config_file(tmp_path):
    cfg = tmp_path / "calib.json"
    cfg.write_text(json.dumps({"tooltip": {"ransac": {"threshold": 3.0, "max_iterations": 50}}}))

    args = build_parser().parse_args(["--config", str(cfg), "tooltip", "--poses", "x.txt", "--iterations", "80"])
    config = build_config_from_args(args)

    assert config.tooltip.ransac.threshold == 3.0
    assert config.tooltip.ransac.max_iterations == 80
