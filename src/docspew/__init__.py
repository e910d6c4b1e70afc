"""Document indexing into Solr and digest-targeted embedded document recovery."""

__version__ = "0.1.0"
