from __future__ import annotations

import io
import json
import sys
import tempfile
import unittest
import xml.etree.ElementTree as ET
from pathlib import Path
from unittest import mock

TESTS_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = TESTS_DIR.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from railgram import cli

SVG_NS = "{http://www.w3.org/2000/svg}"

CALCULATOR = """
//! Arithmetic expressions.

/// An expression is a sum of terms.
expr = { term ~ ("+" ~ term)* }
term = { factor ~ ("*" ~ factor)* }
factor = { number | "(" ~ expr ~ ")" }
number = @{ ASCII_DIGIT+ }
WHITESPACE = _{ " " | "\\t" }
""".strip()


class CLIAcceptanceTests(unittest.TestCase):
    def run_cli(self, argv: list[str], stdin_text: str = "") -> tuple[int, str, str]:
        stdout = io.StringIO()
        stderr = io.StringIO()
        stdin = io.StringIO(stdin_text)
        with mock.patch("sys.stdout", stdout), mock.patch("sys.stderr", stderr), mock.patch("sys.stdin", stdin):
            code = cli.main(argv)
        return code, stdout.getvalue(), stderr.getvalue()

    @staticmethod
    def _rule_groups(svg_text: str) -> list[str]:
        root = ET.fromstring(svg_text)
        return [g.get("data-rule") for g in root.iter(f"{SVG_NS}g")]

    def test_requires_subcommand(self) -> None:
        code, _out, err = self.run_cli([])
        self.assertEqual(code, 2)
        self.assertIn("E_ARGS", err)
        self.assertIn("subcommand", err)

    def test_render_file_writes_svg(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            src = Path(td) / "calc.pest"
            src.write_text(CALCULATOR)
            code, out, err = self.run_cli(["render", str(src)])
            self.assertEqual(code, 0, err)
            target = Path(td) / "calc.svg"
            self.assertTrue(target.exists())
            self.assertIn("Wrote", out)
            self.assertEqual(
                self._rule_groups(target.read_text()),
                ["expr", "term", "factor", "number", "WHITESPACE"],
            )

    def test_render_output_path(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            src = Path(td) / "calc.pest"
            src.write_text(CALCULATOR)
            out_svg = Path(td) / "out" / "diagram.svg"
            out_svg.parent.mkdir()
            code, _out, err = self.run_cli(["render", str(src), "-o", str(out_svg)])
            self.assertEqual(code, 0, err)
            self.assertTrue(out_svg.exists())

    def test_render_text_to_stdout(self) -> None:
        code, out, err = self.run_cli(["render", "--text", 'a = { "x" ~ b }\nb = { "y" }', "--stdout"])
        self.assertEqual(code, 0, err)
        self.assertTrue(out.startswith("<svg"))
        self.assertEqual(self._rule_groups(out), ["a", "b"])

    def test_render_stdin(self) -> None:
        code, out, err = self.run_cli(["render"], stdin_text='a = { "x" }\n')
        self.assertEqual(code, 0, err)
        self.assertEqual(self._rule_groups(out), ["a"])

    def test_empty_stdin_is_an_argument_error(self) -> None:
        code, _out, err = self.run_cli(["render"], stdin_text="   ")
        self.assertEqual(code, 2)
        self.assertIn("E_ARGS", err)

    def test_stdout_and_output_conflict(self) -> None:
        code, _out, err = self.run_cli(["render", "--text", 'a = { "x" }', "--stdout", "-o", "x.svg"])
        self.assertEqual(code, 2)
        self.assertIn("mutually exclusive", err)

    def test_missing_input_file(self) -> None:
        code, _out, err = self.run_cli(["render", "does-not-exist.pest"])
        self.assertEqual(code, 2)
        self.assertIn("E_IO_READ", err)

    def test_syntax_error_reports_position(self) -> None:
        code, _out, err = self.run_cli(
            ["--error-format", "json", "render", "--text", 'a = { "x" }\nb = { ~ }\n', "--stdout"]
        )
        self.assertEqual(code, 3)
        payload = json.loads(err.strip().splitlines()[-1])
        self.assertFalse(payload["ok"])
        self.assertEqual(payload["code"], "E_PARSE_GRAMMAR")
        self.assertEqual(payload["line"], 2)
        self.assertEqual(payload["file"], "<text>")

    def test_duplicate_rules_abort(self) -> None:
        code, out, err = self.run_cli(["render", "--text", 'a = { "x" }\na = { "y" }', "--stdout"])
        self.assertEqual(code, 3)
        self.assertEqual(out, "")
        self.assertIn("error[E_DUPLICATE_RULE]", err)
        self.assertIn("'a'", err)

    def test_unresolved_reference_is_a_warning(self) -> None:
        code, out, err = self.run_cli(["render", "--text", "a = { missing }", "--stdout"])
        self.assertEqual(code, 0, err)
        self.assertIn("warning[W_UNRESOLVED_REFERENCE]: rule 'a'", err)
        self.assertIn("unresolved", out)

    def test_warnings_as_json_lines(self) -> None:
        code, _out, err = self.run_cli(
            ["--error-format", "json", "render", "--text", "a = { missing }", "--stdout"]
        )
        self.assertEqual(code, 0, err)
        payload = json.loads(err.strip())
        self.assertTrue(payload["ok"])
        self.assertEqual(payload["code"], "W_UNRESOLVED_REFERENCE")
        self.assertEqual(payload["rule"], "a")

    def test_exclude_silent_rules(self) -> None:
        code, out, err = self.run_cli(["render", "--text", CALCULATOR, "--stdout", "--exclude-silent"])
        self.assertEqual(code, 0, err)
        self.assertNotIn("WHITESPACE", self._rule_groups(out))

    def test_alphabetical_order(self) -> None:
        code, out, err = self.run_cli(
            ["render", "--text", 'b = { "x" }\na = { "y" }', "--stdout", "--order", "alphabetical"]
        )
        self.assertEqual(code, 0, err)
        self.assertEqual(self._rule_groups(out), ["a", "b"])

    def test_config_file_is_applied(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            config = Path(td) / "style.json"
            config.write_text(json.dumps({"track_color": "#ff0000", "title_per_rule": False}))
            code, out, err = self.run_cli(
                ["render", "--text", 'a = { "x" }', "--stdout", "--config", str(config)]
            )
            self.assertEqual(code, 0, err)
            self.assertIn("#ff0000", out)
            self.assertNotIn('class="title"', out)

    def test_invalid_config_is_reported(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            config = Path(td) / "style.json"
            config.write_text(json.dumps({"arc_radius": 0}))
            code, _out, err = self.run_cli(
                ["render", "--text", 'a = { "x" }', "--stdout", "--config", str(config)]
            )
            self.assertEqual(code, 3)
            self.assertIn("E_CONFIG", err)
            self.assertIn("arc_radius", err)

    def test_infinite_config_value_is_a_config_error(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            config = Path(td) / "style.json"
            config.write_text('{"connector_length": Infinity}')
            code, out, err = self.run_cli(
                ["render", "--text", 'a = { "x" }', "--stdout", "--config", str(config)]
            )
            self.assertEqual(code, 3)
            self.assertEqual(out, "")
            self.assertIn("error[E_CONFIG]", err)

    def test_split_writes_one_file_per_rule(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            src = Path(td) / "calc.pest"
            src.write_text(CALCULATOR)
            out_dir = Path(td) / "diagrams"
            code, out, err = self.run_cli(["split", str(src), "-d", str(out_dir)])
            self.assertEqual(code, 0, err)
            self.assertIn("Wrote 5 diagram(s)", out)
            names = sorted(p.name for p in out_dir.glob("*.svg"))
            self.assertEqual(
                names, ["WHITESPACE.svg", "expr.svg", "factor.svg", "number.svg", "term.svg"]
            )
            self.assertEqual(self._rule_groups((out_dir / "expr.svg").read_text()), ["expr"])

    def test_split_text_needs_directory(self) -> None:
        code, _out, err = self.run_cli(["split", "--text", 'a = { "x" }'])
        self.assertEqual(code, 2)
        self.assertIn("E_ARGS", err)

    def test_rules_lists_names_and_visibility(self) -> None:
        code, out, err = self.run_cli(["rules", "--text", CALCULATOR + "\nbroken = { nowhere }"])
        self.assertEqual(code, 0, err)
        lines = out.strip().splitlines()
        self.assertEqual(lines[0], "expr\tnormal")
        self.assertIn("number\tatomic", lines)
        self.assertIn("WHITESPACE\tsilent", lines)
        self.assertIn("rule 'broken': 'nowhere' is not defined", err)

    def test_unknown_option_is_usage_error(self) -> None:
        code, _out, err = self.run_cli(["render", "--bogus"])
        self.assertEqual(code, 2)
        self.assertIn("E_ARGS", err)


if __name__ == "__main__":
    unittest.main()
