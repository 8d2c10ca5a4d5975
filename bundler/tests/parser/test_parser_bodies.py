#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

from textwrap import dedent

import pytest

from csb_ast import (
    ArrayCreationExpr, BaseExpr, ElementAccessExpr, GroupExpr, InterpolatedStringExpr, InvocationExpr, LiteralExpr,
    MemberAccessExpr, MemberDecl, NameExpr, ObjectCreationExpr, ThisExpr)
from csb_parser import ParseError, Parser


def parse_members(src: str):
    sf = Parser.from_source(dedent(src), filename="Body.cs").parse_source_file()
    return sf.types[0].members


def block_items(member: MemberDecl):
    assert len(member.body) == 1 and isinstance(member.body[0], GroupExpr)
    return member.body[0].items


def test_static_call_chain_is_invocation_of_member_access():
    (method,) = parse_members(
        """
        class A
        {
            string Solve() { return Point.Distance(a, b).ToString(); }
        }
        """
    )

    items = block_items(method)
    assert len(items) == 1
    call = items[0]
    assert isinstance(call, InvocationExpr)
    assert isinstance(call.callee, MemberAccessExpr) and call.callee.name == "ToString"

    inner = call.callee.target
    assert isinstance(inner, InvocationExpr)
    assert isinstance(inner.callee, MemberAccessExpr)
    assert inner.callee.name == "Distance"
    assert inner.callee.target == NameExpr("Point")
    assert inner.args == [NameExpr("a"), NameExpr("b")]


def test_local_declarations_record_type_and_initializer():
    (method,) = parse_members(
        """
        class A
        {
            void M()
            {
                var q = new P(1, 2);
                Pair<int, int> p = new(3, 4);
                int[] xs = new int[10];
                Point? maybe;
            }
        }
        """
    )

    locals_ = {local.name: local for local in method.locals}
    assert set(locals_) == {"q", "p", "xs", "maybe"}

    assert locals_["q"].type is None
    assert isinstance(locals_["q"].init, ObjectCreationExpr)
    assert locals_["q"].init.type.name == "P"
    assert len(locals_["q"].init.args) == 2

    assert locals_["p"].type.format() == "Pair<int, int>"
    assert isinstance(locals_["p"].init, ObjectCreationExpr)
    assert locals_["p"].init.type is None

    assert locals_["xs"].type.format() == "int[]"
    assert isinstance(locals_["xs"].init, ArrayCreationExpr)

    assert locals_["maybe"].type.is_nullable
    assert locals_["maybe"].init is None

    items = block_items(method)
    assert items[0] == NameExpr("var")
    assert isinstance(items[1], ObjectCreationExpr)


def test_foreach_local_takes_the_iterated_collection():
    (method,) = parse_members(
        """
        class A
        {
            void M(List<Point> points)
            {
                foreach (var p in points) { p.Move(); }
            }
        }
        """
    )

    (local,) = method.locals
    assert local.name == "p"
    assert local.is_foreach
    assert local.init == NameExpr("points")


def test_untyped_lambda_parameters_become_locals():
    (method,) = parse_members(
        """
        class A
        {
            int M(List<int> xs) => xs.Select(x => x * 2).Aggregate((a, b) => a + b);
        }
        """
    )

    lambdas = [local for local in method.locals if local.is_lambda]
    assert [local.name for local in lambdas] == ["x", "a", "b"]
    assert all(local.type is None for local in lambdas)
    assert all(isinstance(local.declarator, NameExpr) for local in lambdas)


def test_typed_lambda_parameter_is_a_plain_declaration():
    (method,) = parse_members(
        """
        class A
        {
            void M() { Func<Point, int> f = (Point p) => p.X; }
        }
        """
    )

    names = {local.name: local for local in method.locals}
    assert names["p"].type.name == "Point"
    assert not names["p"].is_lambda
    assert names["f"].type.format() == "Func<Point, int>"


def test_pattern_variable_is_declared():
    (method,) = parse_members(
        """
        class A
        {
            bool M(object o) { return o is Point z && z.X > 0; }
        }
        """
    )

    (local,) = method.locals
    assert local.name == "z"
    assert local.type.name == "Point"


def test_ternary_is_not_a_nullable_declaration():
    (method,) = parse_members(
        """
        class A
        {
            int M(bool c, int a, int b) { return c ? a : b; }
        }
        """
    )

    assert method.locals == []


def test_constructor_initializer_comes_first_in_body():
    members = parse_members(
        """
        class A : B
        {
            public A(int x) : base(x) { Init(); }
            public A() : this(0) { }
        }
        """
    )

    first, second = members
    init = first.body[0]
    assert isinstance(init, InvocationExpr)
    assert isinstance(init.callee, BaseExpr)
    assert init.args == [NameExpr("x")]
    assert isinstance(first.body[1], GroupExpr)

    assert isinstance(second.body[0].callee, ThisExpr)
    assert second.body[0].args == [LiteralExpr("int", "0")]


def test_interpolated_string_holes_are_parsed():
    (method,) = parse_members(
        """
        class A
        {
            string M(Point p) => $"{p.X}:{Format(p)}";
        }
        """
    )

    (interp,) = method.body
    assert isinstance(interp, InterpolatedStringExpr)
    assert interp.holes[0] == MemberAccessExpr(NameExpr("p"), "X")
    assert isinstance(interp.holes[1], InvocationExpr)
    assert interp.holes[1].callee == NameExpr("Format")


def test_generic_method_call_keeps_type_arguments():
    (method,) = parse_members(
        """
        class A
        {
            void M() { var x = Factory.Create<Point>(); var b = i < n; }
        }
        """
    )

    items = block_items(method)
    call = next(i for i in items if isinstance(i, InvocationExpr))
    assert call.callee.name == "Create"
    assert [t.name for t in call.callee.type_args] == ["Point"]

    comparison = [i for i in items if isinstance(i, NameExpr) and i.name in ("i", "n")]
    assert [n.type_args for n in comparison] == [[], []]


def test_element_access_and_global_alias():
    (method,) = parse_members(
        """
        class A
        {
            int M(int[] xs) => xs[0] + global::System.Math.Abs(1);
        }
        """
    )

    access, call = method.body
    assert isinstance(access, ElementAccessExpr)
    assert access.target == NameExpr("xs")

    assert isinstance(call, InvocationExpr)
    assert call.callee.name == "Abs"
    root = call.callee.target.target
    assert root == NameExpr("System", alias="global")


def test_property_initializer_and_accessor_block():
    (prop,) = parse_members(
        """
        class A
        {
            public List<int> Items { get; } = new List<int>();
        }
        """
    )

    block, init = prop.body
    assert isinstance(block, GroupExpr)
    assert isinstance(init, ObjectCreationExpr)
    assert init.type.format() == "List<int>"


@pytest.mark.parametrize(
    "src, code",
    [
        ("class A { void M() int }", "PAR-0042"),
        ("class A { int M() => 1 }", "PAR-0044"),
        ("class A { A() : x() { } }", "PAR-0045"),
        ("class A { object o = new A; }", "PAR-0080"),
        ("class A { void M() { F(1 } }", "PAR-0092"),
    ],
)
def test_body_errors(src, code):
    with pytest.raises(ParseError) as excinfo:
        Parser.from_source(src, filename="Body.cs").parse_source_file()

    assert f"[{code}]" in excinfo.value.message
    assert excinfo.value.filename == "Body.cs"
