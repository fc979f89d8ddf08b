from fastapi import FastAPI


def plugin(app: FastAPI) -> None:
    settings = app.state.definitions.get('settings')

    @app.get('/api/v1/version')
    async def version():
        return {'version': settings.version, 'app_env': settings.app_env}
