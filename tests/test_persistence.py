from pathlib import Path

from dispatch_planner.persistence.filesystem import FileStorage


def test_file_storage_creates_run_directory(tmp_path: Path) -> None:
    storage = FileStorage(root=tmp_path)
    run_dir = storage.make_run_directory(prefix="plan_test")

    assert run_dir.is_dir()
    assert run_dir.parent == tmp_path.resolve() / "outputs"
    assert run_dir.name.startswith("plan_test_")


def test_run_directories_do_not_collide(tmp_path: Path) -> None:
    storage = FileStorage(root=tmp_path)

    first = storage.make_run_directory()
    second = storage.make_run_directory()

    assert first != second


def test_file_storage_writes_json_and_csv(tmp_path: Path) -> None:
    storage = FileStorage(root=tmp_path)
    run_dir = storage.make_run_directory(prefix="plan_test")

    summary_path = run_dir / "summary.json"
    routes_path = run_dir / "routes.csv"

    storage.write_json(summary_path, {"route_id": "Acme_1"})
    storage.write_csv(routes_path, "route_id,total_miles\nAcme_1,50.0\n")

    assert summary_path.read_text(encoding="utf-8") == '{\n  "route_id": "Acme_1"\n}'
    assert routes_path.read_text(encoding="utf-8") == "route_id,total_miles\nAcme_1,50.0\n"
