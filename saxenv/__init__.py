"""Platform environment for Sax cells: local and object store files, election, RPC."""
