# Service classes own the SQL; routers only deal with transport and access checks.
