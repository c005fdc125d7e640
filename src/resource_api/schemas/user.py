"""Field declarations for the users collection."""

from resource_api.services.validation import FieldSpec, RecordSchema

USER_SCHEMA = RecordSchema(
    collection="users",
    fields={
        "name": FieldSpec(type="string", required=True, min_length=2, max_length=50),
        "email": FieldSpec(type="email", required=True, unique=True, max_length=254),
        "password": FieldSpec(
            type="string",
            required=True,
            min_length=6,
            max_length=72,
            secret=True,
            strip=False,
        ),
        "age": FieldSpec(type="integer", minimum=0, maximum=150),
        "bio": FieldSpec(type="string", max_length=280),
        "active": FieldSpec(type="boolean"),
    },
    login_field="email",
)
