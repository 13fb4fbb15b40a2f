"""
Unit Tests - Command Line Interface
"""
import json
from pathlib import Path

import pytest

from olist_kpis.cli import build_parser, main


class TestCli:
    """Tests for the olist-kpis command"""

    def test_run_synthetic(self, tmp_path, capsys):
        exit_code = main(["run", "--synthetic", "40", "--output", str(tmp_path)])

        assert exit_code == 0
        exported = list(Path(tmp_path).glob("*/*.parquet"))
        assert {p.stem for p in exported} >= {"monthly_kpis", "revenue_deciles"}
        assert "reports written" in capsys.readouterr().out

    def test_run_single_report(self, tmp_path):
        exit_code = main([
            "run", "--synthetic", "20", "--output", str(tmp_path), "--report", "top_customers",
        ])

        assert exit_code == 0
        assert [p.stem for p in Path(tmp_path).glob("*/*.parquet")] == ["top_customers"]

    def test_seed_then_run_from_database(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'olist.db'}"

        assert main(["seed", "--database-url", url, "--persons", "30", "--products", "10"]) == 0
        assert main(["run", "--database-url", url, "--output", str(tmp_path / "out")]) == 0

    def test_audit_prints_report(self, capsys):
        exit_code = main(["audit", "--synthetic", "20", "--log-level", "CRITICAL"])

        out = capsys.readouterr().out
        report = json.loads(out[out.index("{"):])
        assert exit_code == 0
        assert set(report["audit"]) == {"orders", "order_items", "customers", "products"}

    def test_unknown_report_rejected(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["run", "--report", "nope"])
