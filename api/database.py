import logging
from contextlib import contextmanager
from typing import Generator, Optional

from neo4j import GraphDatabase, Session
from config import settings

logger = logging.getLogger(__name__)


class Neo4jConnection:
    """Manages Neo4j database connections with connection pooling."""

    def __init__(self, uri: Optional[str] = None, user: Optional[str] = None,
                 password: Optional[str] = None):
        """Initialize Neo4j connection, falling back to settings for anything not given."""
        self.uri = uri or settings.neo4j_uri
        self.user = user or settings.neo4j_user
        self.password = password or settings.neo4j_password

        if not self.password:
            raise ValueError("NEO4J_PASSWORD is required in settings")

        self.driver = GraphDatabase.driver(
            self.uri,
            auth=(self.user, self.password),
            max_connection_pool_size=50,
            connection_acquisition_timeout=30,
            max_transaction_retry_time=30
        )

    def close(self):
        """Close the driver connection"""
        if self.driver:
            self.driver.close()

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """Get a database session with automatic cleanup"""
        session = self.driver.session()
        try:
            yield session
        finally:
            session.close()

    def verify_connectivity(self) -> bool:
        """Verify database connectivity.

        Returns:
            bool: True if connected, False otherwise
        """
        try:
            with self.get_session() as session:
                result = session.run("RETURN 1 as test")
                return result.single()["test"] == 1
        except Exception as e:
            logger.error(f"Database connectivity check failed: {e}")
            return False


# Singleton instance
db = Neo4jConnection()


class BaseRepository:
    """Base repository with common Neo4j operations.

    Provides common database operations that all specific repositories inherit.
    The connection handle can be passed in; the module singleton is used otherwise.
    """

    def __init__(self, connection: Optional[Neo4jConnection] = None):
        self.db = connection or db

    def execute_query(self, query: str, parameters: dict = None) -> list:
        """Execute a read query and return results.

        Args:
            query: Cypher query string
            parameters: Optional query parameters

        Returns:
            list: Query results as list of dictionaries
        """
        with self.db.get_session() as session:
            result = session.run(query, parameters or {})
            return [record.data() for record in result]
