"""End-to-end tests of the command-line scripts."""

from __future__ import annotations

import json
from pathlib import Path

import matplotlib

matplotlib.use("Agg")

import pandas as pd  # noqa: E402
import pytest  # noqa: E402

import compare_layouts  # noqa: E402
import optimize_layouts  # noqa: E402
import prep_corpus  # noqa: E402
import score_layouts  # noqa: E402
from splitkb.cli_utils import handle_common_errors, parse_layout_selection  # noqa: E402
from splitkb.layout_utils import LayoutError, load_layouts, parse_layouts  # noqa: E402


class TestCliUtils:
    def test_layout_selection(self, layouts_text: str) -> None:
        collection = parse_layouts(layouts_text)
        assert [layout.name for layout in parse_layout_selection("2,1-1", collection)] == ["sparse", "qwerty"]
        assert [layout.name for layout in parse_layout_selection("", collection)] == ["qwerty", "sparse"]
        assert [layout.name for layout in parse_layout_selection("sparse", collection)] == ["sparse"]

    def test_layout_selection_bad_range(self, layouts_text: str) -> None:
        with pytest.raises(ValueError, match="Invalid range"):
            parse_layout_selection("2-1", parse_layouts(layouts_text))

    def test_error_codes(self) -> None:
        @handle_common_errors
        def fails(exc: Exception) -> int:
            raise exc

        assert fails(LayoutError("bad")) == 1
        assert fails(KeyError("missing")) == 1
        assert fails(FileNotFoundError("gone")) == 1
        assert fails(KeyboardInterrupt()) == 130


class TestScoreLayouts:
    def test_scores_configured_layouts(self, config_file: Path, tmp_path: Path,
                                       capsys: pytest.CaptureFixture) -> None:
        csv_path = tmp_path / "scores.csv"
        assert score_layouts.main(["--config", str(config_file), "--csv", str(csv_path)]) == 0

        scores = pd.read_csv(csv_path)
        assert set(scores["layout"]) == {"qwerty", "dvorak"}
        assert list(scores["score"]) == sorted(scores["score"])
        assert "Ranking:" in capsys.readouterr().out

    def test_variants_and_reports(self, config_file: Path, capsys: pytest.CaptureFixture) -> None:
        code = score_layouts.main([
            "--config", str(config_file), "--select", "qwerty", "--swap", "ei", "--invert",
            "--format", "detailed", "--bigrams", "2", "--letter", "h", "--set", "SFB=2",
        ])
        assert code == 0
        out = capsys.readouterr().out
        assert "Layout: qwerty (e<->i)" in out
        assert "Layout: qwerty (inv)" in out
        assert "Bigrams by class: qwerty" in out
        assert "Bigrams starting with 'h':" in out

    def test_command_line_layout(self, config_file: Path, capsys: pytest.CaptureFixture) -> None:
        code = score_layouts.main([
            "--config", str(config_file), "--format", "csv",
            "--layout", "home:__________etaoinshr_" + "_" * 10,
        ])
        assert code == 0
        assert "home," in capsys.readouterr().out

    def test_unknown_selection_fails(self, config_file: Path) -> None:
        assert score_layouts.main(["--config", str(config_file), "--select", "colemak"]) == 1

    def test_malformed_layout_fails(self, config_file: Path) -> None:
        assert score_layouts.main(["--config", str(config_file), "--layout", "short:abc"]) == 1

    def test_missing_config_fails(self, tmp_path: Path) -> None:
        assert score_layouts.main(["--config", str(tmp_path / "nope.yaml")]) == 1


class TestOptimizeLayouts:
    def test_seeded_search_saves_result(self, config_file: Path, tmp_path: Path) -> None:
        found = tmp_path / "found.txt"
        code = optimize_layouts.main([
            "--config", str(config_file), "--seed", "qwerty", "--iterations", "50",
            "--restarts", "1", "--random-seed", "3", "--save", str(found),
        ])
        assert code == 0

        saved = load_layouts(found)
        assert saved.names() == ["qwerty_opt"]
        assert sorted(saved.find("qwerty_opt").as_string()) == sorted("qwertyuiopasdfghjkl;zxcvbnm,./")

    def test_random_mode(self, config_file: Path, capsys: pytest.CaptureFixture) -> None:
        code = optimize_layouts.main([
            "--config", str(config_file), "--mode", "random", "--random-seed", "1", "--num-best", "2",
        ])
        assert code == 0
        out = capsys.readouterr().out
        assert "#1 " in out and "#2 " in out

    def test_best_seed(self, config_file: Path, tmp_path: Path) -> None:
        found = tmp_path / "found.txt"
        code = optimize_layouts.main([
            "--config", str(config_file), "--seed", "best", "--restarts", "1",
            "--random-seed", "5", "--save", str(found),
        ])
        assert code == 0
        assert load_layouts(found).names()[0] in {"qwerty_opt", "dvorak_opt"}

    def test_continuous_rounds(self, config_file: Path, tmp_path: Path) -> None:
        found = tmp_path / "found.txt"
        code = optimize_layouts.main([
            "--config", str(config_file), "--mode", "random", "--continuous", "--max-rounds", "2",
            "--restarts", "1", "--random-seed", "5", "--save", str(found), "--name", "mine",
        ])
        assert code == 0
        assert load_layouts(found).names() == ["mine"]

    @pytest.mark.parametrize("flags, expected", [([], None), (["--resume"], True), (["--no-resume"], False)])
    def test_resume_flags(self, config_file: Path, flags: list, expected: object) -> None:
        args = optimize_layouts.create_cli_parser().parse_args(["--config", str(config_file)] + flags)
        params = optimize_layouts.build_search_params(args)
        assert params.resume_from_best is expected
        assert params.iterations == 50

    def test_resume_run_repeats_best_layout(self, config_file: Path, capsys: pytest.CaptureFixture) -> None:
        code = optimize_layouts.main([
            "--config", str(config_file), "--mode", "random", "--iterations", "0", "--restarts", "3",
            "--num-best", "3", "--random-seed", "5", "--resume",
        ])
        assert code == 0
        blocks = [block.strip().split("\n", 1) for block in capsys.readouterr().out.split("\n#")]
        grids = {body for header, body in blocks if header.lstrip("#")[:1].isdigit()}
        assert len(blocks) == 3
        assert len(grids) == 1

    def test_invalid_parameters_fail(self, config_file: Path) -> None:
        assert optimize_layouts.main(["--config", str(config_file), "--cooling-rate", "2"]) == 1


class TestCompareLayouts:
    def test_rankings_and_heatmap(self, config_file: Path, tmp_path: Path) -> None:
        csv_path = tmp_path / "scores.csv"
        assert score_layouts.main(["--config", str(config_file), "--csv", str(csv_path)]) == 0

        rankings = tmp_path / "rankings.csv"
        code = compare_layouts.main([
            "--tables", str(csv_path), "--metrics", "score", "sfb", "missing",
            "--rankings", str(rankings), "--output", str(tmp_path / "cmp.png"),
        ])
        assert code == 0
        assert (tmp_path / "cmp_heatmap.png").exists()

        table = pd.read_csv(rankings)
        assert list(table.columns) == ["layout", "score_rank", "sfb_rank", "total_rank_sum", "score", "sfb"]
        assert list(table["total_rank_sum"]) == sorted(table["total_rank_sum"])

    def test_normalize_inverts_metrics(self) -> None:
        df = pd.DataFrame({"layout": ["a", "b", "c"], "score": [1.0, 2.0, 3.0], "flat": [5.0, 5.0, 5.0]})
        normalized = compare_layouts.normalize_data([df], ["score", "flat"])[0]
        assert list(normalized["score"]) == [1.0, 0.5, 0.0]
        assert list(normalized["flat"]) == [0.5, 0.5, 0.5]

    def test_no_matching_metrics_fails(self, tmp_path: Path) -> None:
        csv_path = tmp_path / "scores.csv"
        csv_path.write_text("layout,score\nqwerty,1.0\n", encoding="utf-8")
        assert compare_layouts.main(["--tables", str(csv_path), "--metrics", "nothing"]) == 1


class TestPrepCorpus:
    def test_builds_json_corpus(self, tmp_path: Path) -> None:
        text = tmp_path / "text.txt"
        text.write_text("Abab, BA!", encoding="utf-8")
        output = tmp_path / "toy.json"

        assert prep_corpus.main([str(text), "--alphabet", "ab", "-o", str(output)]) == 0

        data = json.loads(output.read_text(encoding="utf-8"))
        assert data["language"] == "toy"
        assert data["characters"] == {"a": 0.5, "b": 0.5}
        assert data["bigrams"]["ab"] == 0.5

    def test_missing_text_fails(self, tmp_path: Path) -> None:
        assert prep_corpus.main([str(tmp_path / "nope.txt"), "-o", str(tmp_path / "out.json")]) == 1
