import json
from typing import Dict, List, Optional, Tuple
from datetime import datetime, timezone

from database import BaseRepository
from models.carrier_lookup import CarrierLookupFilters, CarrierLookupResult

# Properties holding nested structures; Neo4j only stores primitives and lists of them
JSON_FIELDS = (
    "physical_address",
    "mailing_address",
    "insurance_on_file",
    "bipd_insurance_on_file",
    "cargo_insurance_on_file",
    "raw_response",
)

DATE_FIELDS = ("lookup_date", "created_at", "updated_at")


def to_utc_iso(value: datetime) -> str:
    """ISO string in UTC; naive values are taken as UTC"""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def to_node_properties(record: CarrierLookupResult) -> Dict:
    """Flatten a record into Neo4j-storable properties"""
    params = record.model_dump()
    for key in JSON_FIELDS:
        if params.get(key) is not None:
            params[key] = json.dumps(params[key])
    for key in DATE_FIELDS:
        if params.get(key) is not None:
            params[key] = to_utc_iso(params[key])
    return params


def from_node(node: Optional[Dict]) -> Optional[Dict]:
    """Decode JSON properties of a stored node back into structures"""
    if node is None:
        return None
    data = dict(node)
    for key in JSON_FIELDS:
        value = data.get(key)
        if isinstance(value, str):
            try:
                data[key] = json.loads(value)
            except ValueError:
                pass
    return data


class CarrierLookupRepository(BaseRepository):
    """Repository for CarrierLookupResult nodes, one per DOT number"""

    def get_by_dot_number(self, dot_number: str) -> Optional[Dict]:
        """Get a stored lookup result by DOT number"""
        query = """
        MATCH (c:CarrierLookupResult {dot_number: $dot_number})
        RETURN c
        LIMIT 1
        """
        result = self.execute_query(query, {"dot_number": str(dot_number)})
        return from_node(result[0]['c']) if result else None

    def get_existing_dot_numbers(self, dot_numbers: List[str]) -> List[str]:
        """Return which of the given DOT numbers already have a stored record"""
        if not dot_numbers:
            return []
        query = """
        MATCH (c:CarrierLookupResult)
        WHERE c.dot_number IN $dot_numbers
        RETURN c.dot_number as dot_number
        """
        result = self.execute_query(query, {"dot_numbers": [str(d) for d in dot_numbers]})
        return [record['dot_number'] for record in result if record.get('dot_number')]

    def create(self, record: CarrierLookupResult) -> Optional[Dict]:
        """Create a new lookup result node"""
        now = datetime.now(timezone.utc).isoformat()
        params = to_node_properties(record)
        params['created_at'] = params.get('created_at') or now
        params['updated_at'] = params.get('updated_at') or now
        params['lookup_date'] = params.get('lookup_date') or now

        query = """
        CREATE (c:CarrierLookupResult)
        SET c = $props
        RETURN c
        """
        result = self.execute_query(query, {"props": params})
        return from_node(result[0]['c']) if result else None

    def update(self, dot_number: str, record: CarrierLookupResult) -> Optional[Dict]:
        """Rewrite a stored record with fresh registry data and bump updated_at.

        User-owned properties (favorite flag, notes, created_at) are kept.
        """
        params = to_node_properties(record)
        for key in ("is_favorite", "notes", "created_at"):
            params.pop(key, None)
        params['updated_at'] = datetime.now(timezone.utc).isoformat()
        params['lookup_date'] = params.get('lookup_date') or params['updated_at']

        query = """
        MATCH (c:CarrierLookupResult {dot_number: $dot_number})
        SET c += $props
        RETURN c
        """
        result = self.execute_query(query, {"dot_number": str(dot_number), "props": params})
        return from_node(result[0]['c']) if result else None

    def touch(self, dot_number: str, lookup_date: Optional[datetime] = None) -> Optional[Dict]:
        """Record a lookup without changing data: only lookup_date moves"""
        query = """
        MATCH (c:CarrierLookupResult {dot_number: $dot_number})
        SET c.lookup_date = $lookup_date
        RETURN c
        """
        params = {
            "dot_number": str(dot_number),
            "lookup_date": to_utc_iso(lookup_date or datetime.now(timezone.utc)),
        }
        result = self.execute_query(query, params)
        return from_node(result[0]['c']) if result else None

    def set_favorite(self, dot_number: str, is_favorite: bool) -> Optional[Dict]:
        """Set the favorite flag of a stored record"""
        query = """
        MATCH (c:CarrierLookupResult {dot_number: $dot_number})
        SET c.is_favorite = $is_favorite, c.updated_at = $updated_at
        RETURN c
        """
        params = {
            "dot_number": str(dot_number),
            "is_favorite": is_favorite,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        result = self.execute_query(query, params)
        return from_node(result[0]['c']) if result else None

    def search(self, filters: Optional[CarrierLookupFilters] = None) -> Tuple[List[Dict], int]:
        """List stored records, newest first, with the total count matching the filters"""
        filters = filters or CarrierLookupFilters()
        where_clauses = []
        params = {"skip": filters.offset, "limit": filters.limit}

        if filters.search_term:
            # A record matching any word in any of the columns is returned
            term_conditions = []
            for i, term in enumerate(t.lower() for t in filters.search_term.split()):
                key = f"term{i}"
                term_conditions.append(
                    f"(toLower(coalesce(c.legal_name, '')) CONTAINS ${key} "
                    f"OR toLower(coalesce(c.dba_name, '')) CONTAINS ${key} "
                    f"OR toLower(coalesce(c.dot_number, '')) CONTAINS ${key} "
                    f"OR toLower(coalesce(c.mc_mx_ff_number, '')) CONTAINS ${key})"
                )
                params[key] = term
            if term_conditions:
                where_clauses.append(f"({' OR '.join(term_conditions)})")

        if filters.is_favorite is not None:
            where_clauses.append("coalesce(c.is_favorite, false) = $is_favorite")
            params['is_favorite'] = filters.is_favorite

        if filters.operating_status:
            where_clauses.append("c.operating_status = $operating_status")
            params['operating_status'] = filters.operating_status

        if filters.start_date:
            where_clauses.append("c.created_at >= $start_date")
            params['start_date'] = to_utc_iso(filters.start_date)

        if filters.end_date:
            where_clauses.append("c.created_at <= $end_date")
            params['end_date'] = to_utc_iso(filters.end_date)

        where_clause = f"WHERE {' AND '.join(where_clauses)}" if where_clauses else ""

        count_query = f"""
        MATCH (c:CarrierLookupResult)
        {where_clause}
        RETURN count(c) as total
        """
        query = f"""
        MATCH (c:CarrierLookupResult)
        {where_clause}
        RETURN c
        ORDER BY c.created_at DESC
        SKIP $skip
        LIMIT $limit
        """

        count_result = self.execute_query(count_query, params)
        total = count_result[0]['total'] if count_result else 0
        result = self.execute_query(query, params)
        return [from_node(record['c']) for record in result], total
