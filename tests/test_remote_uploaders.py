"""Tests for the remote store clients."""

import builtins
import threading

import pytest
from aiohttp import web
from aiohttp import test_utils

from common.exceptions import RemoteUploadError
from gateway.config import REMOTE_BACKEND_DRIVE, REMOTE_BACKEND_LOCAL, UploadSettings
from gateway.remote import DriveUploader, LocalFolderUploader, build_remote_uploader


@pytest.fixture
def artifact(tmp_path):
    path = tmp_path / 'report.pdf'
    path.write_bytes(b'%PDF merged content')
    return path


class FakeDrive:
    """
    Minimal stand-in for the Drive resumable upload endpoints.
    """

    def __init__(self, session_status=200, content_status=200):
        self.session_status = session_status
        self.content_status = content_status
        self.metadata = None
        self.content = None
        self.auth_headers = []
        self.query = None

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_post('/upload/drive/v3/files', self.open_session)
        app.router.add_put('/upload/session/{session_id}', self.receive_content)
        return app

    async def open_session(self, request: web.Request) -> web.Response:
        self.auth_headers.append(request.headers.get('Authorization'))
        self.query = dict(request.query)
        self.metadata = await request.json()
        if self.session_status != 200:
            return web.json_response({'error': 'forbidden'}, status=self.session_status)
        location = str(request.url.with_path('/upload/session/abc123').with_query(None))
        return web.Response(status=200, headers={'Location': location})

    async def receive_content(self, request: web.Request) -> web.Response:
        self.auth_headers.append(request.headers.get('Authorization'))
        self.content = await request.read()
        if self.content_status not in (200, 201):
            return web.json_response({'error': 'quota'}, status=self.content_status)
        return web.json_response({'id': 'drive-file-42'}, status=self.content_status)


def stored_file(root, container_id, remote_id):
    matches = list((root / container_id / remote_id).iterdir())
    assert len(matches) == 1
    return matches[0]


async def start_fake_drive(fake: FakeDrive) -> test_utils.TestServer:
    server = test_utils.TestServer(fake.build_app())
    await server.start_server()
    return server


class TestDriveUploader:

    @pytest.mark.asyncio
    async def test_resumable_upload(self, artifact):
        fake = FakeDrive()
        server = await start_fake_drive(fake)
        uploader = DriveUploader('token-xyz', api_base=str(server.make_url('')))
        try:
            remote_file = await uploader.upload(artifact, 'folder-9')
        finally:
            await uploader.close()
            await server.close()

        assert remote_file.remote_id == 'drive-file-42'
        assert remote_file.file_name == 'report.pdf'
        assert fake.metadata == {'name': 'report.pdf', 'parents': ['folder-9']}
        assert fake.query == {'uploadType': 'resumable', 'fields': 'id'}
        assert fake.content == b'%PDF merged content'
        assert fake.auth_headers == ['Bearer token-xyz', 'Bearer token-xyz']

    @pytest.mark.asyncio
    async def test_artifact_opened_off_the_event_loop(self, artifact, monkeypatch):
        threads = []

        def recording_open(*args, **kwargs):
            threads.append(threading.current_thread())
            return builtins.open(*args, **kwargs)

        monkeypatch.setattr("gateway.remote.drive_uploader.open", recording_open, raising=False)
        fake = FakeDrive()
        server = await start_fake_drive(fake)
        uploader = DriveUploader('token-xyz', api_base=str(server.make_url('')))
        try:
            await uploader.upload(artifact, 'folder-9')
        finally:
            await uploader.close()
            await server.close()

        assert fake.content == b'%PDF merged content'
        assert threads
        assert threading.main_thread() not in threads

    @pytest.mark.asyncio
    async def test_session_refused(self, artifact):
        fake = FakeDrive(session_status=403)
        server = await start_fake_drive(fake)
        uploader = DriveUploader('token-xyz', api_base=str(server.make_url('')))
        try:
            with pytest.raises(RemoteUploadError, match='status 403'):
                await uploader.upload(artifact, 'folder-9')
        finally:
            await uploader.close()
            await server.close()

        assert fake.content is None

    @pytest.mark.asyncio
    async def test_content_rejected(self, artifact):
        fake = FakeDrive(content_status=507)
        server = await start_fake_drive(fake)
        uploader = DriveUploader('token-xyz', api_base=str(server.make_url('')))
        try:
            with pytest.raises(RemoteUploadError, match='status 507'):
                await uploader.upload(artifact, 'folder-9')
        finally:
            await uploader.close()
            await server.close()

    @pytest.mark.asyncio
    async def test_unreachable_host(self, artifact):
        uploader = DriveUploader('token-xyz', api_base='http://127.0.0.1:9', timeout_seconds=5)
        try:
            with pytest.raises(RemoteUploadError):
                await uploader.upload(artifact, 'folder-9')
        finally:
            await uploader.close()

    @pytest.mark.asyncio
    async def test_missing_token(self, artifact):
        uploader = DriveUploader(None)

        with pytest.raises(RemoteUploadError, match='access token'):
            await uploader.upload(artifact, 'folder-9')


class TestLocalFolderUploader:

    @pytest.mark.asyncio
    async def test_copies_artifact(self, tmp_path, artifact):
        uploader = LocalFolderUploader(tmp_path / 'remote')

        remote_file = await uploader.upload(artifact, 'folder-9')

        stored = stored_file(tmp_path / 'remote', 'folder-9', remote_file.remote_id)
        assert stored.name == 'report.pdf'
        assert stored.read_bytes() == b'%PDF merged content'

    @pytest.mark.asyncio
    async def test_rejects_path_like_container(self, tmp_path, artifact):
        uploader = LocalFolderUploader(tmp_path / 'remote')

        with pytest.raises(RemoteUploadError):
            await uploader.upload(artifact, '../outside')


class TestBuildRemoteUploader:

    def test_local_backend(self, tmp_path):
        settings = UploadSettings(remote_backend=REMOTE_BACKEND_LOCAL, local_remote_root=tmp_path)

        assert isinstance(build_remote_uploader(settings), LocalFolderUploader)

    def test_drive_backend(self):
        settings = UploadSettings(remote_backend=REMOTE_BACKEND_DRIVE, drive_access_token='t')

        uploader = build_remote_uploader(settings)

        assert isinstance(uploader, DriveUploader)
        assert uploader.access_token == 't'
