#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

import argparse

import pytest

import csbundle
from csb_context import ClosurePolicy, LogLevel

SOLVER = """\
namespace Contest
{
    public class Solver
    {
        public static int Solve() => Helper.Twice(21);
    }

    public static class Helper
    {
        public static int Twice(int n) => n * 2;
    }

    public enum Mode { Fast, Slow }
}
"""

UTIL = """\
namespace Contest.Util
{
    public class Unused { }
}
"""


def _patch_handlers(monkeypatch):
    calls = []

    def _mk_handler(name):
        def _handler(args):
            calls.append((name, args))
            return 0

        return _handler

    for name in ("bundle", "deps", "units", "ast", "tok"):
        monkeypatch.setattr(csbundle, f"cmd_{name}", _mk_handler(name))
    return calls


def _run_main(argv):
    with pytest.raises(SystemExit) as exc:
        csbundle.main(argv)
    return exc.value.code


@pytest.fixture
def contest(write_cs_file, temp_project):
    write_cs_file("Solver.cs", SOLVER)
    write_cs_file("Util/Unused.cs", UTIL)
    return temp_project


def test_bundle_arguments(monkeypatch):
    calls = _patch_handlers(monkeypatch)

    rc = _run_main(["-v", "bundle", "ws", "A.Root", "out", "--policy", "narrow", "--no-hoist", "--stdout"])

    assert rc == 0
    name, args = calls[0]
    assert name == "bundle"
    assert (args.workspace, args.root, args.output_dir) == ("ws", "A.Root", "out")
    assert args.policy == "narrow"
    assert args.no_hoist and args.stdout
    assert args.verbosity == 1


def test_tokens_alias_maps_to_tok(monkeypatch):
    calls = _patch_handlers(monkeypatch)

    rc = _run_main(["tokens", "-I", "A.cs"])

    assert rc == 0
    name, args = calls[0]
    assert name == "tok"
    assert args.include_eof
    assert args.file == "A.cs"


def test_units_namespace_filter(monkeypatch):
    calls = _patch_handlers(monkeypatch)

    _run_main(["units", "ws", "-n", "Contest"])

    assert calls[0][1].namespace == "Contest"


def test_invalid_policy_choice(monkeypatch, capsys):
    calls = _patch_handlers(monkeypatch)

    rc = _run_main(["deps", "ws", "A.Root", "--policy", "deep"])

    assert rc == 2
    assert calls == []
    assert "invalid choice" in capsys.readouterr().err


def test_invalid_policy_environment(monkeypatch, capsys):
    calls = _patch_handlers(monkeypatch)
    monkeypatch.setenv(csbundle.ENV_POLICY, "deep")

    rc = _run_main(["deps", "ws", "A.Root"])

    assert rc == 2
    assert calls == []
    assert "invalid $CSBUNDLE_POLICY value 'deep'" in capsys.readouterr().err


def test_build_bundle_context(monkeypatch):
    monkeypatch.setenv(csbundle.ENV_POLICY, "narrow")
    monkeypatch.setenv(csbundle.ENV_ENTRY_METHOD, "Run")

    context = csbundle.build_bundle_context(argparse.Namespace(verbosity=3))
    assert context.policy is ClosurePolicy.NARROW
    assert context.entry_method == "Run"
    assert context.log_level is LogLevel.DEBUG
    assert context.hoist_platform_usings

    args = argparse.Namespace(verbosity=0, policy="wide", entry_method="Main",
                              scaffold_namespace="Judge", no_hoist=True)
    context = csbundle.build_bundle_context(args)
    assert context.policy is ClosurePolicy.WIDE
    assert context.entry_method == "Main"
    assert context.scaffold_namespace == "Judge"
    assert not context.hoist_platform_usings
    assert context.log_level is LogLevel.WARNING


def test_bundle_writes_file(contest, tmp_path, capsys):
    out_dir = tmp_path / "out"

    rc = _run_main(["bundle", str(contest), "Contest.Solver", str(out_dir)])

    assert rc == 0
    target = out_dir / "Solver.cs"
    assert f"Generated {target}" in capsys.readouterr().out
    text = target.read_text()
    assert "var result = Solver.Solve();" in text
    assert text.count("namespace Contest\n") == 3
    assert "public enum Mode" in text
    assert "Unused" not in text


def test_bundle_to_stdout(contest, tmp_path, capsys):
    rc = _run_main(["bundle", str(contest), "Contest.Solver", str(tmp_path / "out"), "--stdout",
                    "--entry-method", "Main", "--scaffold-namespace", "Judge"])

    captured = capsys.readouterr()
    assert rc == 0
    assert captured.out.startswith("/*******\n")
    assert "namespace Judge\n" in captured.out
    assert "var result = Solver.Main();" in captured.out
    assert not (tmp_path / "out").exists()


def test_bundle_missing_root(contest, tmp_path, capsys):
    rc = _run_main(["bundle", str(contest), "Contest.Nope", str(tmp_path / "out")])

    assert rc == 1
    assert "error: [CSB-0010] class 'Contest.Nope' not found in workspace" in capsys.readouterr().err
    assert not (tmp_path / "out").exists()


def test_bundle_missing_workspace(tmp_path, capsys):
    rc = _run_main(["bundle", str(tmp_path / "nowhere"), "A.Root", str(tmp_path / "out")])

    assert rc == 1
    assert "[CSB-0030]" in capsys.readouterr().err


def test_deps_lists_closure(contest, capsys):
    rc = _run_main(["deps", str(contest), "Contest.Solver", "--policy", "narrow"])

    assert rc == 0
    assert capsys.readouterr().out.splitlines() == [
        "class          Contest.Solver",
        "class          Contest.Helper",
    ]


def test_deps_wide_includes_namespace_siblings(contest, capsys):
    rc = _run_main(["deps", str(contest), "Contest.Solver"])

    assert rc == 0
    assert capsys.readouterr().out.splitlines() == [
        "class          Contest.Solver",
        "class          Contest.Helper",
        "enum           Contest.Mode",
    ]


def test_units_grouped_by_namespace(contest, capsys):
    rc = _run_main(["units", str(contest)])

    assert rc == 0
    assert capsys.readouterr().out.splitlines() == [
        "=== namespace Contest ===",
        "    class          Solver",
        "    class          Helper",
        "    enum           Mode",
        "",
        "=== namespace Contest.Util ===",
        "    class          Unused",
        "",
    ]


def test_warnings_are_printed_with_snippets(write_cs_file, temp_project, capsys):
    write_cs_file("Solver.cs", """\
        namespace Contest
        {
            public class Solver
            {
                public static int Solve() => Solver.Nope();
            }
        }
        """)

    rc = _run_main(["deps", str(temp_project), "Contest.Solver"])

    captured = capsys.readouterr()
    assert rc == 0
    assert "warning: [COL-0010]" in captured.err
    assert "    5 |         public static int Solve() => Solver.Nope();" in captured.err
    assert "^" in captured.err


def test_tok_dumps_tokens(write_cs_file, capsys):
    path = write_cs_file("A.cs", "namespace N { }\n")

    rc = _run_main(["tok", str(path)])

    lines = capsys.readouterr().out.splitlines()
    assert rc == 0
    assert lines[0] == f"{path}:1:1:\tNAMESPACE            'namespace'"
    assert len(lines) == 4


def test_tok_reports_lexer_errors(write_cs_file, capsys):
    path = write_cs_file("A.cs", 'class A { string s = "open; }\n')

    rc = _run_main(["tok", str(path)])

    assert rc == 1
    assert f"{path}:1:" in capsys.readouterr().err


def test_ast_prints_tree(write_cs_file, capsys):
    path = write_cs_file("A.cs", "namespace N { class A { } }\n")

    rc = _run_main(["ast", str(path)])

    assert rc == 0
    assert "SourceFile" in capsys.readouterr().out


def test_ast_reports_parse_errors(write_cs_file, capsys):
    path = write_cs_file("A.cs", "namespace N { class { } }\n")

    rc = _run_main(["ast", str(path)])

    err = capsys.readouterr().err
    assert rc == 1
    assert f"{path}:1:" in err
    assert "[PAR-" in err
