"""Tests for reference parsing and placeholder resolution."""

import pytest
from converge.model.expressions import (
    UNKNOWN,
    contains_unknown,
    parse_reference,
    resolve_value,
)
from converge.model.models import Ref, SplatRef, Template


@pytest.fixture
def outputs():
    """Output lookup backed by a dict; missing addresses are unknown."""
    values = {
        ("aws_vpc.main", "id"): "vpc-1",
        ("aws_subnet.a[0]", "id"): "subnet-0",
        ("aws_subnet.a[1]", "id"): "subnet-1",
    }
    return lambda address, output: values.get((address, output), UNKNOWN)


class TestParseReference:
    """Test parsing of reference expressions."""

    @pytest.mark.parametrize("expression,expected", [
        ("aws_vpc.main.id", ("aws_vpc", "main", None, "id")),
        ("aws_subnet.a[2].id", ("aws_subnet", "a", 2, "id")),
        ("aws_subnet.a.2.id", ("aws_subnet", "a", 2, "id")),
        ("aws_subnet.a[*].id", ("aws_subnet", "a", "*", "id")),
    ])
    def test_reference_forms(self, expression, expected):
        """Test every supported reference form."""
        assert parse_reference(expression) == expected

    @pytest.mark.parametrize("expression", ["HOME", "var.region", "upper(aws_vpc.main.id)"])
    def test_non_references(self, expression):
        """Test expressions that are not resource references."""
        assert parse_reference(expression) is None


class TestResolveValue:
    """Test placeholder resolution."""

    def test_ref(self, outputs):
        """Test a Ref resolves to the target output."""
        ref = Ref(target="aws_vpc.main", output="id", expression="aws_vpc.main.id")
        assert resolve_value(ref, outputs) == "vpc-1"

    def test_splat(self, outputs):
        """Test a SplatRef resolves to a list in instance order."""
        splat = SplatRef(targets=["aws_subnet.a[0]", "aws_subnet.a[1]"], output="id", expression="aws_subnet.a[*].id")
        assert resolve_value(splat, outputs) == ["subnet-0", "subnet-1"]

    def test_template(self, outputs):
        """Test a Template interpolates every reference."""
        template = Template(
            text="vpc=${aws_vpc.main.id} home=${HOME}",
            refs={"aws_vpc.main.id": Ref(target="aws_vpc.main", output="id", expression="aws_vpc.main.id")},
        )
        assert resolve_value(template, outputs) == "vpc=vpc-1 home=${HOME}"

    def test_unknown_propagates(self, outputs):
        """Test an unknown output makes the whole template unknown."""
        template = Template(
            text="${aws_lb.front.dns_name}:443",
            refs={"aws_lb.front.dns_name": Ref(target="aws_lb.front", output="dns_name", expression="aws_lb.front.dns_name")},
        )
        assert resolve_value(template, outputs) is UNKNOWN

    def test_unknown_kept_in_containers(self, outputs):
        """Test containers keep UNKNOWN in place."""
        value = {"ids": [Ref(target="aws_lb.front", output="id", expression="aws_lb.front.id"), "x"]}
        resolved = resolve_value(value, outputs)

        assert resolved["ids"][1] == "x"
        assert contains_unknown(resolved)

    def test_unknown_is_falsy_singleton(self):
        assert not UNKNOWN
        assert type(UNKNOWN)() is UNKNOWN
