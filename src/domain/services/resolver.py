"""
Coin Resolver - Maps user-typed names, symbols and slugs to canonical IDs.

The lookup table is built in two passes by a single writer and published as
an immutable mapping. Readers never lock: they see either the previous table
or the complete new one.
"""

from collections.abc import Iterable, Mapping
from types import MappingProxyType

from src.domain.entities.catalog import CatalogEntry
from src.domain.services.formatter import slugify
from src.infrastructure.logging import get_logger

logger = get_logger(__name__)


class ResolutionTableBuilder:
    """
    Single-use builder for a resolution table.
    
    Explicit keys (name, symbol, slug, "<word> coin" aliases) are registered
    during the catalog pass. Bare first-word aliases of other multi-word
    names are deferred and only committed afterwards, for keys nobody claimed.
    The first registration of a key always wins.
    """
    
    def __init__(self) -> None:
        self._keys: dict[str, str] = {}
        self._deferred: list[tuple[str, str]] = []
        self._built = False
    
    def _claim(self, key: str, coin_id: str) -> None:
        if key and key not in self._keys:
            self._keys[key] = coin_id
    
    def add_entries(self, catalog: Iterable[CatalogEntry]) -> "ResolutionTableBuilder":
        """First pass: register explicit keys in catalog order."""
        if self._built:
            raise RuntimeError("Resolution table already built")
        
        for entry in catalog:
            if not entry.id:
                continue
            name = entry.name.lower()
            self._claim(name, entry.id)
            self._claim(entry.symbol.lower(), entry.id)
            self._claim(slugify(entry.name), entry.id)
            
            words = name.split(" ")
            if len(words) > 1:
                if words[1] == "coin":
                    self._claim(words[0], entry.id)
                else:
                    self._deferred.append((words[0], entry.id))
        return self
    
    def commit_deferred_aliases(self) -> "ResolutionTableBuilder":
        """Second pass: commit first-word aliases that are still unclaimed."""
        for alias, coin_id in self._deferred:
            self._claim(alias, coin_id)
        self._deferred = []
        return self
    
    def build(self) -> Mapping[str, str]:
        """Finish both passes and return the read-only table."""
        self.commit_deferred_aliases()
        self._built = True
        return MappingProxyType(dict(self._keys))


class CoinResolver:
    """
    Read-only handle over the published resolution table.
    
    resolve() never fails: a miss falls back to the slug of the input so the
    caller can still attempt a provider request with it.
    """
    
    def __init__(self) -> None:
        self._table: Mapping[str, str] = MappingProxyType({})
    
    @property
    def table(self) -> Mapping[str, str]:
        return self._table
    
    @property
    def is_loaded(self) -> bool:
        return len(self._table) > 0
    
    def publish(self, table: Mapping[str, str]) -> None:
        """Swap in a fully built table."""
        self._table = table
    
    def build(self, catalog: Iterable[CatalogEntry]) -> Mapping[str, str]:
        """
        Build a table from a catalog and publish it.
        
        Args:
            catalog: Catalog entries in provider order
        
        Returns:
            The published table.
        """
        table = ResolutionTableBuilder().add_entries(catalog).build()
        self.publish(table)
        logger.info("Resolution table published", keys=len(table))
        return table
    
    def resolve(self, text: str) -> str:
        """
        Resolve a name, symbol or slug to a canonical ID.
        
        Args:
            text: User-supplied identifier, any case
        
        Returns:
            Canonical ID, or the slugified input when nothing matches.
        """
        key = (text or "").strip().lower()
        coin_id = self._table.get(key)
        if coin_id is not None:
            return coin_id
        return slugify(key)
    
    def resolve_many(self, texts: Iterable[str]) -> list[str]:
        return [self.resolve(text) for text in texts]
