import io
import os
import shutil

import pytest
from google.protobuf import descriptor_pb2 as d2
from google.protobuf.compiler import plugin_pb2 as plugin

from protoc_gen_twirp_ts.config import GeneratorOptions
from protoc_gen_twirp_ts.main import main, process_request, run, run_plugin

FD = d2.FieldDescriptorProto

HAS_PROTOC = shutil.which("protoc") is not None

PROTO_CONTENT = """\
syntax = "proto3";

package shop.v1;

message Item {
  string name = 1;
  int32 qty = 2;
  repeated string tags = 3;
}

message GetItemRequest {
  string item_id = 1;
}

service ItemService {
  rpc GetItem(GetItemRequest) returns (Item);
}
"""


def _field(name: str, type_: int, number: int, type_name: str = "") -> FD:
    f = FD(name=name, number=number, type=type_, label=FD.LABEL_OPTIONAL)
    if type_name:
        f.type_name = type_name
    return f


def _common_file() -> d2.FileDescriptorProto:
    return d2.FileDescriptorProto(
        name="common/v1/money.proto",
        package="common.v1",
        message_type=[d2.DescriptorProto(name="Money", field=[_field("amount", FD.TYPE_INT64, 1)])],
    )


def _shop_file() -> d2.FileDescriptorProto:
    return d2.FileDescriptorProto(
        name="shop/v1/item.proto",
        package="shop.v1",
        dependency=["common/v1/money.proto"],
        message_type=[
            d2.DescriptorProto(name="Item", field=[
                _field("name", FD.TYPE_STRING, 1),
                _field("price", FD.TYPE_MESSAGE, 2, ".common.v1.Money"),
            ]),
            d2.DescriptorProto(name="GetItemRequest", field=[_field("item_id", FD.TYPE_STRING, 1)]),
        ],
        service=[
            d2.ServiceDescriptorProto(name="ItemService", method=[
                d2.MethodDescriptorProto(
                    name="GetItem",
                    input_type=".shop.v1.GetItemRequest",
                    output_type=".shop.v1.Item",
                ),
            ]),
        ],
    )


def _request(parameter: str = "") -> plugin.CodeGeneratorRequest:
    return plugin.CodeGeneratorRequest(
        file_to_generate=["shop/v1/item.proto"],
        parameter=parameter,
        proto_file=[_common_file(), _shop_file()],
    )


class TestPluginMode:
    def test_response_files(self):
        response = process_request(_request())

        assert not response.error
        assert [f.name for f in response.file] == [
            "twirp.ts",
            "common/v1/money.ts",
            "common/v1/index.ts",
            "shop/v1/item.ts",
            "shop/v1/index.ts",
        ]
        assert response.supported_features == plugin.CodeGeneratorResponse.FEATURE_PROTO3_OPTIONAL

    def test_cross_package_import(self):
        response = process_request(_request())
        content = {f.name: f.content for f in response.file}["shop/v1/item.ts"]
        assert "import { IMoneyJSON, Money } from '../../common/v1/money'" in content

    def test_parameters(self):
        response = process_request(_request("prefix=/api,runtime=false"))
        names = [f.name for f in response.file]
        assert "twirp.ts" not in names
        content = {f.name: f.content for f in response.file}["shop/v1/item.ts"]
        assert "private path = '/api/shop.v1.ItemService/'" in content

    def test_unknown_parameter_is_reported(self):
        response = process_request(_request("colour=blue"))
        assert "unknown plugin parameter 'colour'" in response.error
        assert len(response.file) == 0

    def test_duplicate_declaration_is_reported(self):
        request = _request()
        request.proto_file.append(_common_file())
        response = process_request(request)
        assert "already declared" in response.error
        assert len(response.file) == 0

    def test_run_plugin_streams(self):
        stdin = io.BytesIO(_request().SerializeToString())
        stdout = io.BytesIO()

        assert run_plugin(stdin, stdout) == 0

        response = plugin.CodeGeneratorResponse.FromString(stdout.getvalue())
        assert "shop/v1/item.ts" in [f.name for f in response.file]

    def test_run_plugin_error_exit_code(self):
        stdin = io.BytesIO(_request("runtime=maybe").SerializeToString())
        stdout = io.BytesIO()

        assert run_plugin(stdin, stdout) == 1

        response = plugin.CodeGeneratorResponse.FromString(stdout.getvalue())
        assert "expects a boolean" in response.error


class TestCliMode:
    def test_run_writes_files(self, tmp_path):
        written = run([_common_file(), _shop_file()], str(tmp_path), GeneratorOptions())

        assert os.path.join(str(tmp_path), "shop", "v1", "item.ts") in written
        assert (tmp_path / "twirp.ts").is_file()
        assert (tmp_path / "common" / "v1" / "index.ts").is_file()
        content = (tmp_path / "shop" / "v1" / "item.ts").read_text(encoding="utf-8")
        assert "export class ItemService implements IItemService {" in content

    def test_main_with_descriptor_set(self, tmp_path):
        fds = d2.FileDescriptorSet(file=[_common_file(), _shop_file()])
        desc_path = tmp_path / "set.pb"
        desc_path.write_bytes(fds.SerializeToString())
        out_dir = tmp_path / "out"

        assert main(["--descriptor-set", str(desc_path), "--out", str(out_dir), "--no-runtime"]) == 0

        assert (out_dir / "shop" / "v1" / "item.ts").is_file()
        assert not (out_dir / "twirp.ts").exists()

    def test_main_reports_fatal_errors(self, tmp_path, capsys):
        fds = d2.FileDescriptorSet(file=[_common_file(), _common_file()])
        desc_path = tmp_path / "set.pb"
        desc_path.write_bytes(fds.SerializeToString())

        assert main(["--descriptor-set", str(desc_path), "--out", str(tmp_path / "out")]) == 1
        assert "FATAL:" in capsys.readouterr().err

    def test_main_requires_out(self, tmp_path):
        with pytest.raises(SystemExit):
            main(["--descriptor-set", str(tmp_path / "set.pb")])

    @pytest.mark.skipif(not HAS_PROTOC, reason="protoc not installed")
    def test_main_with_proto(self, tmp_path):
        proto_path = tmp_path / "item.proto"
        proto_path.write_text(PROTO_CONTENT, encoding="utf-8")
        out_dir = tmp_path / "out"

        assert main(["--proto", str(proto_path), "--out", str(out_dir)]) == 0

        content = (out_dir / "shop" / "v1" / "item.ts").read_text(encoding="utf-8")
        assert "export interface IItem {" in content
        assert "  tags?: string[]" in content
        assert "private path = '/twirp/shop.v1.ItemService/'" in content
        assert "export * from './item'" in (out_dir / "shop" / "v1" / "index.ts").read_text(encoding="utf-8")
