import portfolio_live as pl


server = pl.RelayServer.from_config(
    {
        "notification_buffer_size": 3,
        "allowed_origins": ["http://localhost:8000"],
    }
)

if __name__ == "__main__":
    import uvicorn

    # We run the server using `uvicorn`:
    uvicorn.run(server.app, port=9001)
