"""
Schemas Pydantic
Progetto: Gestionale Preventivi (Quotation Manager)
"""
