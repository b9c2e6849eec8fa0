"""GraphQL documents for the attestation index.

The many-query is built per call: a ``where`` clause appears only for
the filters actually supplied, so an absent filter imposes no
constraint. The documents and variable names must stay byte-compatible
with the deployed index.
"""

from __future__ import annotations

from typing import Any

from rsk_attest.models.attestation import AttestationFilters

DEFAULT_LIMIT = 10

ATTESTATION_FIELDS = """
            id
            attester
            recipient
            revoked
            revocable
            refUID
            data
            timeCreated
            expirationTime
            revocationTime
            schema {
              id
            }"""

# Filter name -> where-clause fragment, in document order.
_WHERE_CLAUSES = (
    ("recipient", "recipient: $recipient,"),
    ("attester", "attester: $attester,"),
    ("schema", "schemaId: $schema,"),
)


def where_clauses(filters: AttestationFilters) -> list[str]:
    present = filters.present()
    return [clause for name, clause in _WHERE_CLAUSES if name in present]


def build_many_query(filters: AttestationFilters) -> str:
    where = "\n              ".join(where_clauses(filters))
    return f"""
        query GetAttestations($recipient: String, $attester: String, $schema: String, $limit: Int) {{
          attestations(
            where: {{
              {where}
            }}
            first: $limit
            orderBy: timeCreated
            orderDirection: desc
          ) {{{ATTESTATION_FIELDS}
          }}
        }}
      """


def build_many_variables(filters: AttestationFilters) -> dict[str, Any]:
    """Variables for the many-query; unset filters are omitted entirely."""
    variables: dict[str, Any] = dict(filters.present())
    variables["limit"] = filters.limit or DEFAULT_LIMIT
    return variables


SINGLE_QUERY = f"""
        query GetAttestation($uid: String!) {{
          attestation(id: $uid) {{{ATTESTATION_FIELDS}
          }}
        }}
      """
