# Request and response contracts for the marketplace API.
