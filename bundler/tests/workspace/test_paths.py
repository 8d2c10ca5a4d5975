#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

import pytest

from csb_paths import WorkspacePaths, parse_solution, read_project


def rel_docs(project):
    return ["/".join(p.relative_to(project.root).parts) for p in project.document_paths()]


def test_directory_without_project_is_one_project(temp_project, write_cs_file):
    write_cs_file("B.cs", "class B { }")
    write_cs_file("Geo/A.cs", "class A { }")
    write_cs_file("bin/Debug/Gen.cs", "class Gen { }")
    write_cs_file("obj/Gen2.cs", "class Gen2 { }")

    ws = WorkspacePaths.discover(temp_project)

    assert len(ws.projects) == 1
    project = ws.projects[0]
    assert project.project_file is None
    assert rel_docs(project) == ["B.cs", "Geo/A.cs"]


def test_directory_with_projects_uses_each_project(temp_project, write_csproj, write_cs_file):
    write_csproj("Lib/Lib.csproj")
    write_csproj("App/App.csproj")
    write_cs_file("Lib/Pair.cs", "class Pair { }")
    write_cs_file("App/Main.cs", "class Main { }")

    ws = WorkspacePaths.discover(temp_project)

    assert [p.name for p in ws.projects] == ["App", "Lib"]
    assert rel_docs(ws.projects[1]) == ["Pair.cs"]


def test_solution_lists_projects_in_solution_order(temp_project, write_sln, write_csproj, write_cs_file):
    write_csproj("Solvers/Solvers.csproj")
    write_csproj("Util/Util.csproj")
    write_cs_file("Solvers/A.cs", "class A { }")
    sln = write_sln("All.sln", [
        ("Util", "Util\\Util.csproj"),
        ("Solvers", "Solvers\\Solvers.csproj"),
        ("Gone", "Gone\\Gone.csproj"),
    ])

    ws = WorkspacePaths.discover(sln)

    assert [p.name for p in ws.projects] == ["Util", "Solvers"]
    assert [m.name for m in ws.missing] == ["Gone.csproj"]


def test_solution_folders_are_ignored():
    text = (
        'Project("{2150E333-8FDC-42A3-9474-1A3956D46DE8}") = "docs", "docs", "{1}"\n'
        'Project("{FAE04EC0-301F-11D3-BF4B-00C04F79EFBC}") = "App", "App\\App.csproj", "{2}"\n'
    )
    assert parse_solution(text) == [("docs", "docs"), ("App", "App\\App.csproj")]


def test_project_flags(temp_project, write_csproj, write_cs_file):
    proj = write_csproj("App/App.csproj", """\
        <Project Sdk="Microsoft.NET.Sdk">
          <PropertyGroup>
            <ImplicitUsings>enable</ImplicitUsings>
            <EnableDefaultCompileItems>false</EnableDefaultCompileItems>
          </PropertyGroup>
          <ItemGroup>
            <Compile Include="Src\\Kept.cs" />
          </ItemGroup>
        </Project>
        """)
    write_cs_file("App/Src/Kept.cs", "class Kept { }")
    write_cs_file("App/Other.cs", "class Other { }")

    project = read_project(proj)

    assert project.implicit_usings
    assert rel_docs(project) == ["Src/Kept.cs"]


def test_missing_locator_raises(temp_project):
    with pytest.raises(FileNotFoundError):
        WorkspacePaths.discover(temp_project / "nope")


def test_unsupported_file_raises(temp_project, write_cs_file):
    path = write_cs_file("A.cs", "class A { }")
    with pytest.raises(ValueError):
        WorkspacePaths.discover(path)
