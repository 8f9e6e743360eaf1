"""Centralized query definitions for Memory graph operations.

All node queries return the same column order so one row mapper can
handle every result:

    id, content, embedding, concept_type, status, subject_key,
    created_at, updated_at
"""


class NodeQueries:
    """Cypher for Memory nodes, RELATION edges and entity mentions."""

    class Columns:
        """Column indices for Memory query results."""

        ID = 0
        CONTENT = 1
        EMBEDDING = 2
        CONCEPT_TYPE = 3
        STATUS = 4
        SUBJECT_KEY = 5
        CREATED_AT = 6
        UPDATED_AT = 7

    NODE_COLUMNS = """
        m.id, m.content, m.embedding, m.concept_type, m.status,
        m.subject_key, m.created_at, m.updated_at
    """

    EDGE_COLUMNS = "s.id, t.id, r.kind, r.reason, r.weight, r.created_at"

    CREATE_NODE = """
        CREATE (m:Memory {
            id: $id,
            content: $content,
            embedding: $embedding,
            concept_type: $concept_type,
            status: $status,
            subject_key: $subject_key,
            created_at: $created_at,
            updated_at: $updated_at
        })
    """

    CREATE_EDGE = """
        MATCH (s:Memory {id: $source_id}), (t:Memory {id: $target_id})
        CREATE (s)-[:RELATION {
            kind: $kind,
            reason: $reason,
            weight: $weight,
            created_at: $created_at
        }]->(t)
    """

    SET_STATUS = """
        MATCH (m:Memory {id: $id})
        SET m.status = $status, m.updated_at = $updated_at
    """

    @classmethod
    def get_by_id(cls) -> str:
        return f"""
            MATCH (m:Memory {{id: $id}})
            RETURN {cls.NODE_COLUMNS}
        """

    @classmethod
    def filtered_nodes(cls, where_clause: str) -> str:
        """Full scan of Memory nodes with a WHERE clause (fallback search)."""
        return f"""
            MATCH (m:Memory)
            WHERE {where_clause}
            RETURN {cls.NODE_COLUMNS}
        """

    @classmethod
    def by_prefix(cls) -> str:
        return f"""
            MATCH (m:Memory)
            WHERE starts_with(m.content, $prefix)
            RETURN {cls.NODE_COLUMNS}
            ORDER BY m.created_at DESC
            LIMIT $limit
        """

    @staticmethod
    def vector_search() -> str:
        return """
            CALL QUERY_VECTOR_INDEX('Memory', 'memory_embedding_idx', $embedding, $k)
            RETURN node.id, 1 - distance AS similarity
            ORDER BY similarity DESC
        """

    @classmethod
    def outgoing_edges(cls) -> str:
        return f"""
            MATCH (s:Memory {{id: $id}})-[r:RELATION]->(t:Memory)
            RETURN {cls.EDGE_COLUMNS}
        """

    @classmethod
    def incoming_edges(cls) -> str:
        return f"""
            MATCH (s:Memory)-[r:RELATION]->(t:Memory {{id: $id}})
            RETURN {cls.EDGE_COLUMNS}
        """
