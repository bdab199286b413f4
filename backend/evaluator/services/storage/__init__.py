from .document_store import DocumentStore, HTTPDocumentStore, LocalDocumentStore, create_document_store
