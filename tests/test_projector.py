from __future__ import annotations

import json

from issuepress.models import VisibilityDecision
from issuepress.projector import (
    filter_remote_links,
    project,
    project_comments,
    project_issue_links,
    project_remote_links,
    summarize,
)


def _decisions():
    return {
        'OS-200': VisibilityDecision.disclose('OS-200', {'key': 'OS-200'}),
        'OS-300': VisibilityDecision.suppress('OS-300'),
    }


def test_project_keeps_only_allowlisted_fields(raw_issue, publish_config, recording_logger):
    sanitized = project(raw_issue, _decisions(), [], publish_config, recording_logger)
    issue = sanitized.issue

    assert set(issue) == {'id', 'key', 'fields'}
    assert list(issue['fields']) == [
        'summary',
        'issuetype',
        'priority',
        'status',
        'created',
        'updated',
        'creator',
        'reporter',
        'resolution',
        'resolutiondate',
        'fixVersions',
        'issuelinks',
        'labels',
        'description',
        'comment',
    ]
    fields = issue['fields']
    assert fields['issuetype'] == {'id': '1', 'name': 'Bug', 'description': 'A problem'}
    assert fields['status'] == {'id': '5', 'name': 'Resolved'}
    assert fields['creator'] == {
        'name': 'jdoe',
        'key': 'jdoe',
        'emailAddress': 'jdoe@example.com',
        'displayName': 'Jo Doe',
    }
    assert fields['fixVersions'] == [
        {'id': '20', 'name': '2020-release', 'archived': False, 'released': True, 'releaseDate': '2020-03-05'}
    ]
    assert fields['labels'] == ['bhyve']
    assert recording_logger.records == []


def test_project_leaks_nothing_private(raw_issue, publish_config, recording_logger):
    sanitized = project(raw_issue, _decisions(), [], publish_config, recording_logger)
    dumped = json.dumps(sanitized.to_dict())
    for secret in (
        'customer-acme',
        'customer is ACME',
        'private neighbour',
        'OS-300',
        'secret roadmap',
        'internal cost centre',
        'jira.internal',
        'avatarUrls',
        'public"',
    ):
        assert secret not in dumped


def test_project_does_not_mutate_input(raw_issue, publish_config):
    before = json.dumps(raw_issue, sort_keys=True)
    project(raw_issue, _decisions(), [], publish_config)
    assert json.dumps(raw_issue, sort_keys=True) == before


def test_issue_links_follow_visibility(raw_issue):
    links = project_issue_links(raw_issue['fields']['issuelinks'], _decisions())
    assert [link['id'] for link in links] == ['900', '902']
    assert links[0] == {
        'id': '900',
        'type': {'id': '10000', 'name': 'Relates', 'inward': 'relates to', 'outward': 'relates to'},
        'outwardIssue': {'id': '10002', 'key': 'OS-200', 'fields': {'summary': 'public neighbour'}},
    }


def test_issue_link_with_one_visible_endpoint_keeps_only_that_side():
    link = {
        'id': '1',
        'type': {'name': 'Blocks'},
        'outwardIssue': {'id': '2', 'key': 'OS-2', 'fields': {'summary': 'open'}},
        'inwardIssue': {'id': '3', 'key': 'OS-3', 'fields': {'summary': 'hidden'}},
    }
    decisions = {'OS-2': VisibilityDecision.disclose('OS-2', {}), 'OS-3': VisibilityDecision.suppress('OS-3')}
    (out,) = project_issue_links([link], decisions)
    assert 'inwardIssue' not in out
    assert out['outwardIssue']['key'] == 'OS-2'


def test_issue_links_without_decisions_are_dropped():
    link = {'id': '1', 'type': {}, 'outwardIssue': {'key': 'OS-2'}}
    assert project_issue_links([link], {}) == []


def test_comments_with_visibility_rules_are_dropped(raw_issue, recording_logger):
    out = project_comments(raw_issue['fields']['comment'], 'OS-100', recording_logger)
    assert [c['id'] for c in out['comments']] == ['1', '3']
    assert out['total'] == out['maxResults'] == 2
    assert out['startAt'] == 0
    assert out['comments'][0] == {
        'id': '1',
        'created': '2020-01-03T00:00:00.000+0000',
        'updated': '2020-01-03T00:00:00.000+0000',
        'body': 'looking into it',
        'author': {'name': 'jdoe', 'displayName': 'Jo Doe'},
        'updateAuthor': {'name': 'jdoe', 'displayName': 'Jo Doe'},
    }
    assert recording_logger.records == []


def test_comment_count_mismatch_is_logged(raw_issue, recording_logger):
    comment = raw_issue['fields']['comment']
    comment['total'] = 5
    out = project_comments(comment, 'OS-100', recording_logger)
    assert out['total'] == 2
    (level, message, extra), = recording_logger.records
    assert (level, message) == ('warning', 'comment count mismatch')
    assert extra['issue'] == 'OS-100'
    assert extra['total'] == 5
    assert extra['enumerated'] == 3
    assert extra['category'] == 'ConsistencyWarning'


def test_labels_absent_project_to_empty_list(publish_config):
    sanitized = project({'id': '1', 'key': 'OS-1', 'fields': {'summary': 's'}}, {}, [], publish_config)
    assert sanitized.fields == {'summary': 's', 'labels': []}
    assert sanitized.remotelinks == []


def test_remote_links_projected_to_url_and_title():
    links = [
        {
            'id': 10,
            'globalId': 'system=internal',
            'relationship': 'mentioned in',
            'object': {'url': 'https://github.com/x', 'title': 'x', 'icon': {'url16x16': 'i'}},
        }
    ]
    assert project_remote_links(links) == [
        {'id': 10, 'object': {'url': 'https://github.com/x', 'title': 'x'}}
    ]


def test_filter_remote_links_by_host(publish_config):
    links = [
        {'id': 1, 'object': {'url': 'https://github.com/joyent/illumos-joyent/commit/1'}},
        {'id': 2, 'object': {'url': 'https://GitHub.com/joyent/x'}},
        {'id': 3, 'object': {'url': 'https://bucket.s3.amazonaws.com/core?Signature=abc'}},
        {'id': 4, 'object': {'url': 'https://cr.example.org/c/42'}},
        {'id': 5, 'object': {'url': 'https://evil.github.com.example.net/'}},
        {'id': 6, 'object': {'url': 'http://[::1'}},
        {'id': 7, 'object': {}},
        {'id': 8},
    ]
    kept = filter_remote_links(links, publish_config)
    assert [link['id'] for link in kept] == [1, 2, 4]


def test_project_includes_filtered_remote_links(raw_issue, publish_config):
    remote = [{'id': 1, 'object': {'url': 'https://github.com/a', 'title': 'a'}}]
    sanitized = project(raw_issue, {}, filter_remote_links(remote, publish_config), publish_config)
    assert sanitized.to_dict()['remotelinks'] == [{'id': 1, 'object': {'url': 'https://github.com/a', 'title': 'a'}}]
    assert sanitized.fields['issuelinks'] == []


def test_summarize(raw_issue, publish_config):
    assert summarize(raw_issue, publish_config) == {
        'id': 'OS-100',
        'summary': 'zone fails to boot',
        'web_url': 'https://issues.example.org/view/OS-100',
    }
