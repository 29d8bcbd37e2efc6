import pytest

from workflowkit.exprparser.parser import (
    ArrayDerefNode,
    BoolNode,
    CompareKind,
    CompareOpNode,
    ExpressionError,
    ExprSyntaxError,
    FloatNode,
    FuncCallNode,
    IndexAccessNode,
    IntNode,
    LogicalKind,
    LogicalOpNode,
    NotOpNode,
    NullNode,
    ObjectDerefNode,
    StringNode,
    VariableNode,
    parse_expression,
    tokenize,
    walk,
)


@pytest.mark.parametrize(
    "text,expected",
    [
        ("true", BoolNode(True)),
        ("false", BoolNode(False)),
        ("null", NullNode()),
        ("123", IntNode(123)),
        ("-9.7", FloatNode(-9.7)),
        ("0xff", IntNode(255)),
        ("-2.99e-2", FloatNode(-2.99e-2)),
        ("0.0", FloatNode(0.0)),
        ("'foo'", StringNode("foo")),
        ("'it''s foo'", StringNode("it's foo")),
    ],
)
def test_literals(text, expected):
    assert parse_expression(text) == expected


def test_nan_and_infinity_are_variables():
    assert parse_expression("NaN") == VariableNode("NaN")
    assert parse_expression("Infinity") == VariableNode("Infinity")


def test_parsing_stops_at_closing_braces():
    assert parse_expression("1 }} 2 garbage") == IntNode(1)
    assert parse_expression("contains('a', 'b') }}}}") == FuncCallNode(
        "contains", [StringNode("a"), StringNode("b")]
    )


def test_braces_inside_string_are_kept():
    assert parse_expression("'${{Test}}'") == StringNode("${{Test}}")


def test_and_binds_tighter_than_or():
    assert parse_expression("a || b && c") == LogicalOpNode(
        LogicalKind.OR,
        VariableNode("a"),
        LogicalOpNode(LogicalKind.AND, VariableNode("b"), VariableNode("c")),
    )


def test_grouping_overrides_precedence():
    assert parse_expression("(a || b) && c") == LogicalOpNode(
        LogicalKind.AND,
        LogicalOpNode(LogicalKind.OR, VariableNode("a"), VariableNode("b")),
        VariableNode("c"),
    )


@pytest.mark.parametrize(
    "op,kind",
    [
        ("<", CompareKind.LESS),
        ("<=", CompareKind.LESS_EQ),
        (">", CompareKind.GREATER),
        (">=", CompareKind.GREATER_EQ),
        ("==", CompareKind.EQ),
        ("!=", CompareKind.NOT_EQ),
    ],
)
def test_compare_operators(op, kind):
    assert parse_expression(f"1 {op} 2") == CompareOpNode(kind, IntNode(1), IntNode(2))


def test_ordering_binds_tighter_than_equality():
    assert parse_expression("1 < 2 == true") == CompareOpNode(
        CompareKind.EQ,
        CompareOpNode(CompareKind.LESS, IntNode(1), IntNode(2)),
        BoolNode(True),
    )


def test_not_applies_to_negative_number():
    assert parse_expression("!-10") == NotOpNode(IntNode(-10))
    assert parse_expression("!!x") == NotOpNode(NotOpNode(VariableNode("x")))


def test_property_and_array_deref():
    github = VariableNode("github")
    commits = ObjectDerefNode(ObjectDerefNode(github, "event"), "commits")
    assert parse_expression("github.event.commits.*.author") == ObjectDerefNode(
        ArrayDerefNode(commits), "author"
    )


def test_identifiers_may_contain_dashes():
    assert parse_expression("steps.step-id2.conclusion") == ObjectDerefNode(
        ObjectDerefNode(VariableNode("steps"), "step-id2"), "conclusion"
    )


def test_index_access():
    assert parse_expression("steps['step-id']['outcome']") == IndexAccessNode(
        IndexAccessNode(VariableNode("steps"), StringNode("step-id")),
        StringNode("outcome"),
    )
    assert parse_expression("x[-1]") == IndexAccessNode(VariableNode("x"), IntNode(-1))


def test_function_calls():
    assert parse_expression("always()") == FuncCallNode("always", [])
    assert parse_expression("format('{0}', 1, true)") == FuncCallNode(
        "format", [StringNode("{0}"), IntNode(1), BoolNode(True)]
    )
    assert parse_expression("fromJSON('[0,1]')[1]") == IndexAccessNode(
        FuncCallNode("fromJSON", [StringNode("[0,1]")]), IntNode(1)
    )


@pytest.mark.parametrize(
    "text",
    ["", "}}", "1 +", "'abc", "(1", "foo(1,", "foo(1 2)", "a.", "1 2", "1abc", "a = b", "x[1"],
)
def test_syntax_errors(text):
    with pytest.raises(ExprSyntaxError):
        parse_expression(text)


def test_syntax_error_is_expression_error_with_offset():
    with pytest.raises(ExpressionError) as info:
        parse_expression("1 2")
    assert info.value.offset == 2


def test_tokenize_values():
    tokens = tokenize("a == 'b' }} rest")
    assert [t.value for t in tokens[:-1]] == ["a", "==", "b"]
    assert tokens[-1].kind == "end"
    assert tokens[-1].offset == len("a == 'b' ")


def test_walk_visits_every_node_parents_first():
    tree = parse_expression("contains(a.b, f(1)) && !g()")
    nodes = list(walk(tree))
    assert nodes[0] is tree
    callees = [n.callee for n in nodes if isinstance(n, FuncCallNode)]
    assert callees == ["contains", "f", "g"]
    assert IntNode(1) in nodes
    assert VariableNode("a") in nodes


def test_walk_of_leaf_yields_only_leaf():
    assert list(walk(StringNode("x"))) == [StringNode("x")]