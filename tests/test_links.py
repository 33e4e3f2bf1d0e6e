import json

import pytest

from dbstack.errors import ResolutionError, ValidationError
from dbstack.services.deferred import of, pending
from dbstack.services.links import (
    LinkDescriptor,
    Linkable,
    PolicyStatement,
    environment_key,
    link_environment,
    policy_document,
    single_secret_arn,
)


class StaticLinkable(Linkable):
    def __init__(self, **values):
        self.values = values

    def get_link(self):
        return LinkDescriptor.build({key: "str" for key in self.values}, self.values)


def test_build_rejects_mismatched_shape():
    with pytest.raises(ValueError):
        LinkDescriptor.build({"cluster_arn": "str"}, {"secret_arn": of("arn")})


def test_build_keeps_deferred_values_by_identity():
    arn = pending()
    link = LinkDescriptor.build({"cluster_arn": "str", "port": "int"}, {"cluster_arn": arn, "port": 5432})

    assert link.value["cluster_arn"] is arn
    assert link.value["port"].get() == 5432
    assert link.type_annotation() == "{ cluster_arn: str; port: int }"


def test_link_values_cannot_be_replaced():
    link = LinkDescriptor.build({"name": "str"}, {"name": "app"})

    with pytest.raises(TypeError):
        link.value["name"] = of("other")


def test_resolve_waits_for_every_value():
    arn = pending()
    link = LinkDescriptor.build({"cluster_arn": "str", "database_name": "str"}, {"cluster_arn": arn, "database_name": "app"})
    resolved = link.resolve()

    assert not resolved.is_settled()
    arn._resolve("arn:aws:rds:us-east-1:123456789012:cluster:db")
    assert resolved.get() == {
        "cluster_arn": "arn:aws:rds:us-east-1:123456789012:cluster:db",
        "database_name": "app",
    }


def test_statement_renders_sorted_actions():
    statement = PolicyStatement.build(
        ["rds-data:ExecuteStatement", "rds-data:BatchExecuteStatement"],
        [of("arn:aws:rds:us-east-1:123456789012:cluster:db")],
    )

    assert statement.render().get() == {
        "Effect": "Allow",
        "Action": ["rds-data:BatchExecuteStatement", "rds-data:ExecuteStatement"],
        "Resource": ["arn:aws:rds:us-east-1:123456789012:cluster:db"],
    }


@pytest.mark.parametrize("resource", ["*", "arn:aws:rds:us-east-1:123456789012:cluster:*", "", None])
def test_statement_refuses_unscoped_resources(resource):
    statement = PolicyStatement.build(["secretsmanager:GetSecretValue"], [resource])

    with pytest.raises(ValidationError):
        statement.render().get()


def test_statement_render_waits_for_resources():
    arn = pending()
    rendered = PolicyStatement.build(["secretsmanager:GetSecretValue"], [arn]).render()

    assert not rendered.is_settled()
    arn._resolve("arn:aws:secretsmanager:us-east-1:123456789012:secret:rds!cluster-1")
    assert rendered.get()["Resource"] == ["arn:aws:secretsmanager:us-east-1:123456789012:secret:rds!cluster-1"]


def test_policy_document_collects_statements():
    document = policy_document([
        PolicyStatement.build(["secretsmanager:GetSecretValue"], ["arn:secret"]),
        PolicyStatement.build(["rds-data:ExecuteStatement"], ["arn:cluster"]),
    ]).get()

    assert document["Version"] == "2012-10-17"
    assert [item["Resource"] for item in document["Statement"]] == [["arn:secret"], ["arn:cluster"]]


@pytest.mark.parametrize(
    "name,expected",
    [
        ("MyDatabase", "DBSTACK_RESOURCE_MYDATABASE"),
        ("orders-db", "DBSTACK_RESOURCE_ORDERS_DB"),
        ("a.b c", "DBSTACK_RESOURCE_A_B_C"),
    ],
)
def test_environment_key(name, expected):
    assert environment_key(name) == expected


def test_link_environment_encodes_links_as_json():
    database_name = pending()
    environment = link_environment({
        "MyDatabase": StaticLinkable(database_name=database_name, cluster_arn="arn:cluster"),
    })

    assert not environment.is_settled()
    database_name._resolve("app")

    encoded = environment.get()["DBSTACK_RESOURCE_MYDATABASE"]
    assert json.loads(encoded) == {"cluster_arn": "arn:cluster", "database_name": "app"}


def test_single_secret_arn():
    secrets = [{"secret_arn": "arn:secret", "secret_status": "active", "kms_key_id": None}]

    assert single_secret_arn(secrets) == "arn:secret"


@pytest.mark.parametrize(
    "secrets",
    [
        [],
        None,
        [{"secret_arn": "arn:one"}, {"secret_arn": "arn:two"}],
        [{"secret_status": "active"}],
    ],
)
def test_single_secret_arn_rejects_anything_else(secrets):
    with pytest.raises(ResolutionError):
        single_secret_arn(secrets)
