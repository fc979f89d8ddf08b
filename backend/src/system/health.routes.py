from fastapi import FastAPI


def plugin(app: FastAPI) -> None:
    logger = app.state.definitions.get('logger')

    @app.get('/api/v1/health')
    async def health():
        logger.debug("health check")
        return {'status': 'ok'}
