from drift_flow.core.metadata import (
    endpoint_entity,
    extract_metadata,
    extract_table_names,
    split_endpoint,
)
from drift_flow.core.models import DriftArtifact, LayerType


def test_split_endpoint_handles_colon_and_space_forms():
    assert split_endpoint("POST:/users") == ("POST", "/users")
    assert split_endpoint("delete /users/{id}") == ("DELETE", "/users/{id}")
    assert split_endpoint("/users") == (None, "/users")


def test_endpoint_entity_drops_versions_prefixes_and_parameters():
    assert endpoint_entity("GET:/v1/users/{id}/orders") == "users_orders"
    assert endpoint_entity("/api/products") == "products"
    assert endpoint_entity("/api/v2/{tenant}") is None


def test_extract_table_names_keeps_strongest_confidence():
    tables = extract_table_names(
        "CREATE TABLE IF NOT EXISTS orders (id int); SELECT * FROM users JOIN accounts ON true"
    )

    assert tables["orders"] == 1.0
    assert tables["users"] == 0.7
    assert tables["accounts"] == 0.7
    assert "if" not in tables


def test_api_metadata():
    artifact = DriftArtifact(
        layer_type=LayerType.API,
        endpoints=["POST:/users"],
        changes=["FIELD_ADDED: email"],
    )

    metadata = extract_metadata(artifact)

    assert metadata.entities == ["users"]
    assert metadata.operations == ["create"]
    assert metadata.fields == ["email"]


def test_api_operations_from_path_verbs():
    artifact = DriftArtifact(layer_type=LayerType.API, endpoints=["/orders/delete"])

    assert "delete" in extract_metadata(artifact).operations


def test_database_metadata():
    artifact = DriftArtifact(
        layer_type=LayerType.DATABASE,
        changes=["DROP TABLE: users", "ALTER TABLE orders ADD COLUMN total int"],
    )

    metadata = extract_metadata(artifact)

    assert set(metadata.entities) == {"users", "orders"}
    assert metadata.operations == ["update", "delete"]
    assert metadata.fields == ["total"]


def test_infrastructure_metadata():
    artifact = DriftArtifact(
        layer_type=LayerType.INFRASTRUCTURE,
        changes=["RESOURCE_ADDITION: AWS::S3::Bucket - UploadsBucket"],
    )

    metadata = extract_metadata(artifact)

    assert metadata.entities == ["uploadsbucket"]
    assert metadata.operations == ["create"]


def test_configuration_metadata():
    artifact = DriftArtifact(
        layer_type=LayerType.CONFIGURATION,
        changes=[
            "DEPENDENCY_ADDED: express",
            "MAJOR_VERSION_BUMP: pg",
            "ENV_VAR_ADDED: DATABASE_URL",
            "DEPENDENCY_ADDED: express",
        ],
    )

    metadata = extract_metadata(artifact)

    assert metadata.dependencies == ["express", "pg"]
    assert metadata.fields == ["DATABASE_URL"]
